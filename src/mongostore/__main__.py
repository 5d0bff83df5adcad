from mongostore.main import main

main()
