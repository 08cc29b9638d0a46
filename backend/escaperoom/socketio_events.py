from flask_socketio import join_room, leave_room, emit

LEADERBOARD_ROOM = 'leaderboard'


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_run(data):
    run_id = (data or {}).get('run_id')
    if not run_id:
        emit('error', {'message': 'run_id is required'})
        return
    room = f"run:{run_id}"
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_run(data):
    run_id = (data or {}).get('run_id')
    if not run_id:
        emit('error', {'message': 'run_id is required'})
        return
    room = f"run:{run_id}"
    leave_room(room)
    emit('left', {'room': room})


def handle_join_leaderboard(data=None):
    join_room(LEADERBOARD_ROOM)
    emit('joined', {'room': LEADERBOARD_ROOM})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from escaperoom import socketio

    handlers = {
        'connect': handle_connect,
        'join_run': handle_join_run,
        'leave_run': handle_leave_run,
        'join_leaderboard': handle_join_leaderboard,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for name, handler in handlers.items():
            socketio.on_event(name, handler, namespace=namespace)
