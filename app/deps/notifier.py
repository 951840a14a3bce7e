from app.services.change_notifier import ChangeNotifier, LoggingNotifier

_notifier: ChangeNotifier = LoggingNotifier()


def get_notifier() -> ChangeNotifier:
    return _notifier
