"""
Builders for vendor JSON documents as the ACC server writes them
"""

import json
from pathlib import Path
from typing import List, Optional


def make_driver(player_id: str = 'S1001', first_name: str = 'Max',
                last_name: str = 'Tester', short_name: str = 'TES') -> dict:
    return {
        'firstName': first_name,
        'lastName': last_name,
        'shortName': short_name,
        'playerId': player_id,
    }


def make_car(car_id: int, race_number: int, drivers: List[dict],
             car_model: int = 1, ballast_kg: Optional[int] = 0,
             team_name: str = '', car_group: str = 'GT3') -> dict:
    car = {
        'carId': car_id,
        'raceNumber': race_number,
        'carModel': car_model,
        'cupCategory': 0,
        'carGroup': car_group,
        'teamName': team_name,
        'nationality': 0,
        'drivers': drivers,
    }
    if ballast_kg is not None:
        car['ballastKg'] = ballast_kg
    return car


def make_lap(car_id: int, splits: List[int], driver_index: int = 0,
             valid: bool = True, laptime: Optional[int] = None) -> dict:
    return {
        'carId': car_id,
        'driverIndex': driver_index,
        'laptime': sum(splits) if laptime is None else laptime,
        'isValidForBest': valid,
        'splits': splits,
    }


def make_results(cars: List[dict], laps: List[dict], track: str = 'monza',
                 session_type: str = 'R', server_name: str = 'Test Server',
                 wet: bool = False) -> dict:
    return {
        'sessionType': session_type,
        'trackName': track,
        'sessionIndex': 0,
        'raceWeekendIndex': 0,
        'metaData': track,
        'serverName': server_name,
        'sessionResult': {
            'bestlap': min((lap['laptime'] for lap in laps), default=0),
            'bestSplits': [],
            'isWetSession': 1 if wet else 0,
            'type': 1,
            'leaderBoardLines': [
                {'car': car, 'currentDriver': car['drivers'][0] if car['drivers'] else {},
                 'currentDriverIndex': 0, 'timing': {}, 'missingMandatoryPitstop': 0,
                 'driverTotalTimes': []}
                for car in cars
            ],
        },
        'laps': laps,
        'penalties': [],
        'post_race_penalties': None,
    }


def make_entry_list(drivers: List[dict]) -> dict:
    return {
        'entries': [{'drivers': [driver], 'raceNumber': i + 1, 'forcedCarModel': -1}
                    for i, driver in enumerate(drivers)],
        'forceEntryList': 0,
    }


def single_driver_results(splits_per_lap: List[List[int]], player_id: str = 'S1001',
                          **kwargs) -> dict:
    """One car, one driver, one lap per entry of `splits_per_lap`"""
    car = make_car(1001, 7, [make_driver(player_id)])
    return make_results([car], [make_lap(1001, splits) for splits in splits_per_lap], **kwargs)


def write_result(directory: Path, filename: str, document: dict,
                 encoding: str = 'utf-16-le') -> Path:
    """Write a document the way the server does (UTF-16LE, no BOM, by default)"""
    path = Path(directory) / filename
    path.write_bytes(json.dumps(document, indent=2).encode(encoding))
    return path
