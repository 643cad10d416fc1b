from pongrelay import db, socketio
from pongrelay.models import GameRecord


class GameStatsRecorder:
    """Fire-and-forget sink for finished-game statistics.

    Writes happen on a Socket.IO background task so the relay never waits
    on the database; under TESTING they run inline for determinism.
    """

    def __init__(self, app):
        self.app = app

    def __call__(self, stats) -> None:
        if self.app.config.get('TESTING'):
            self._persist(stats)
        else:
            socketio.start_background_task(self._persist, stats)

    def _persist(self, stats) -> None:
        with self.app.app_context():
            try:
                db.session.add(GameRecord.from_stats(stats))
                db.session.commit()
                self.app.logger.info(f"[stats] room={stats.get('roomId')} winner={stats.get('winner')} stored")
            except Exception:
                db.session.rollback()
                self.app.logger.exception(f"[stats-error] room={stats.get('roomId')} not stored")
