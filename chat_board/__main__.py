from chat_board.cli import main

main()
