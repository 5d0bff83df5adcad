"""Infrastructure layer: RabbitMQ transport and MongoDB persistence."""
