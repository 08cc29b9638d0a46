from escaperoom import db
from datetime import datetime, timezone

STATION_MODES = ('web', 'in_person')


def utcnow():
    return datetime.now(timezone.utc)


class Run(db.Model):
    __tablename__ = 'run'
    run_id = db.Column(db.String(64), primary_key=True)
    team_name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    results = db.relationship('StationResult', back_populates='run', lazy='dynamic')

    def to_dict(self):
        return {
            'run_id': self.run_id,
            'team_name': self.team_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class StationDefinition(db.Model):
    __tablename__ = 'station_definition'
    station_key = db.Column(db.String(64), primary_key=True)
    title = db.Column(db.String(128), nullable=False)
    max_score = db.Column(db.Integer, nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.CheckConstraint('max_score > 0', name='ck_station_definition_max_score_positive'),
    )

    def to_dict(self):
        return {
            'station_key': self.station_key,
            'title': self.title,
            'max_score': self.max_score,
            'order_index': self.order_index,
        }


class StationResult(db.Model):
    __tablename__ = 'station_result'
    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.String(64), db.ForeignKey('run.run_id', name='fk_station_result_run_id'), nullable=False, index=True)
    station_key = db.Column(db.String(64), nullable=False)
    mode = db.Column(db.String(16), nullable=False, default='web')  # web, in_person
    score = db.Column(db.Integer, nullable=False, default=0)
    # Issued master-key fragment; kept apart from the free-form meta map
    key_part = db.Column(db.String(16), nullable=True)
    meta = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    run = db.relationship('Run', back_populates='results')

    __table_args__ = (
        db.UniqueConstraint('run_id', 'station_key', name='uq_station_result_run_station'),
    )

    def to_dict(self):
        return {
            'run_id': self.run_id,
            'station_key': self.station_key,
            'mode': self.mode,
            'score': self.score,
            'key_part': self.key_part,
            'meta': dict(self.meta or {}),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
