"""Shared reference data and feed builders for the tests."""

import sys
from pathlib import Path

# Add src to path so we can import railtrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from railtrack.reference_loader import ReferenceDataStore

POSITIONS = {
    "pos": [
        {"ID": "E001", "name": "新宿", "kind": "駅"},
        {"ID": "E002", "name": "笹塚", "kind": "駅"},
        {"ID": "E010", "name": "明大前", "kind": "駅"},
        {"ID": "E081", "name": "渋谷", "kind": "駅"},
        {"ID": "E200", "name": "車庫", "kind": "駅"},
        {"ID": "U001", "name": "新宿～笹塚", "kind": "駅間", "max_disp": "3"},
        {"ID": "D002", "name": "笹塚～新宿", "kind": "駅間", "max_disp": "3"},
    ]
}

TRAIN_TYPES = {
    "syasyu": [
        {"code": "1", "name": "特急", "iconname": "特"},
        {"code": "7", "name": "各駅停車", "iconname": "各"},
    ]
}

DESTINATIONS = {
    "ikisaki": [
        {"code": "054", "name": "京王多摩センター"},
        {"code": "001", "name": "新宿"},
    ]
}

LINES = {
    "line": [
        {"code": "1", "name": "京王線"},
        {"code": "3", "name": "井の頭線"},
    ]
}


def make_store() -> ReferenceDataStore:
    store = ReferenceDataStore()
    store.load_from_payloads(POSITIONS, TRAIN_TYPES, DESTINATIONS, LINES, version="20250401")
    return store


def feed_train(number, delay="00", direction="1", position="0", type_code="1", destination="054", cars="10", info=""):
    """A train entry as it appears in traffic_info.json."""
    return {
        "tr": f" {number} ",
        "sy": type_code,
        "sy_tr": type_code,
        "ki": direction,
        "bs": position,
        "dl": delay,
        "ik": "402",
        "ik_tr": destination,
        "sr": cars,
        "inf": info,
    }


def traffic_info(stationed=None, in_transit=None):
    """A traffic_info.json document updated at 2025-04-24 10:45:00."""
    return {
        "up": [{"dt": [{"yy": "2025", "mt": "4", "dy": "24", "hh": "10", "mm": "45", "ss": "0"}], "st": "0"}],
        "TS": [{"id": loc, "sn": "K", "ps": trains} for loc, trains in (stationed or {}).items()],
        "TB": [{"id": loc, "sn": "K", "ps": trains} for loc, trains in (in_transit or {}).items()],
    }


def dia(*stops):
    """A dia/<train>.json document; each stop is (st, sn, ht, pa)."""
    return {"dy": [{"st": st, "sn": sn, "ht": ht, "pa": pa} for st, sn, ht, pa in stops]}
