import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Session:
    """Who is playing: passed explicitly into every engine write."""
    run_id: str
    team_name: Optional[str] = None

    @classmethod
    def start(cls, team_name, run_id=None):
        """Open a session for ``team_name``; a fresh run id unless resuming one."""
        team = str(team_name or '').strip() or None
        rid = str(run_id or '').strip() or uuid.uuid4().hex
        return cls(run_id=rid, team_name=team)

    def to_dict(self):
        return {'run_id': self.run_id, 'team_name': self.team_name}
