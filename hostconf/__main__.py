from hostconf.cli import main

main()
