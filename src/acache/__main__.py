from acache.cli.main import main

main()
