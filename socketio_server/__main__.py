from socketio_server.server import main

main()
