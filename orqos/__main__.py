from orqos.main import main

main()
