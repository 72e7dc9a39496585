from vidnotes.cli.main import main

main()
