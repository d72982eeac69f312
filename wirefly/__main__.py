from wirefly.main import main

main()
