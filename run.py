from pongrelay import create_app, socketio

app = create_app()

if __name__ == '__main__':
    try:
        # Use SocketIO server to enable websockets in dev
        socketio.run(app, host='0.0.0.0', port=int(app.config.get('PORT', 3000)))
    finally:
        app.extensions['relay'].sweeper.stop()
