from pongrelay import db
from datetime import datetime, timezone
import json


def _utcnow():
    return datetime.now(timezone.utc)


class GameRecord(db.Model):
    __tablename__ = 'game_record'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.String(64), nullable=False, index=True)
    winner = db.Column(db.String(16), nullable=True)  # player1, player2, or null on a tie
    player1_score = db.Column(db.Integer, nullable=False, default=0)
    player2_score = db.Column(db.Integer, nullable=False, default=0)
    duration_ms = db.Column(db.Integer, nullable=False, default=0)
    total_hits = db.Column(db.Integer, nullable=False, default=0)
    players = db.Column(db.Text, nullable=True)  # JSON-encoded list of {id, name, stats}
    created_at = db.Column(db.DateTime, default=_utcnow)

    @classmethod
    def from_stats(cls, stats):
        scores = stats.get('finalScores') or {}
        return cls(
            room_id=stats['roomId'],
            winner=stats.get('winner'),
            player1_score=int(scores.get('player1', 0)),
            player2_score=int(scores.get('player2', 0)),
            duration_ms=int(stats.get('duration') or 0),
            total_hits=int(stats.get('totalHits') or 0),
            players=json.dumps(stats.get('players') or []),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'roomId': self.room_id,
            'winner': self.winner,
            'finalScores': {'player1': self.player1_score, 'player2': self.player2_score},
            'duration': self.duration_ms,
            'totalHits': self.total_hits,
            'players': json.loads(self.players) if self.players else [],
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class ClientGameData(db.Model):
    """Game data batches uploaded by clients that were offline during play."""
    __tablename__ = 'client_game_data'
    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(64), nullable=False, index=True)
    payload = db.Column(db.Text, nullable=False)
    received_at = db.Column(db.DateTime, default=_utcnow)
