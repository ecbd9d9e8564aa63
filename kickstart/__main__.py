from kickstart.cli import main

main()
