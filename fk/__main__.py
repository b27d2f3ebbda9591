from fk.cli.app import main

main()
