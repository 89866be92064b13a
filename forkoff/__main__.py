from forkoff.main import main

main()
