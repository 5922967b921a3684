from notebridge.cli import main

main()
