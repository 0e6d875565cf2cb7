from vetci.cli import main

main()
