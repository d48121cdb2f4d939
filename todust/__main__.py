from todust.cli import main

main()
