from .catalog import list_stations, max_total
from .formulas import clamp, round_half_up
from .ledger import list_for_run
from .master_key import final_station_key
from .runs import get_run


def run_progress(run_id):
    """Resume state for a run: what is done, what it is worth, which fragments
    were issued. Unknown runs simply have no results."""
    run = get_run(run_id)
    rows = list_for_run(run_id)
    final_key = final_station_key()
    completed = {
        r.station_key: {
            'mode': r.mode,
            'score': r.score,
            'key_part': r.key_part,
            'updated_at': r.updated_at.isoformat() if r.updated_at else None,
        }
        for r in rows
    }
    total = sum(r.score for r in rows)
    ceiling = max_total()
    stations = []
    for station in list_stations():
        item = station.to_dict()
        item['completed'] = station.station_key in completed
        stations.append(item)
    return {
        'run': run.to_dict() if run else {'run_id': run_id, 'team_name': None, 'created_at': None},
        'stations': stations,
        'completed': completed,
        'key_parts': [r.key_part for r in rows if r.key_part and r.station_key != final_key],
        'total_score': total,
        'max_total': ceiling,
        'energy_pct': clamp(round_half_up(100 * total / ceiling), 0, 100) if ceiling else 0,
        'has_master': final_key in completed,
    }
