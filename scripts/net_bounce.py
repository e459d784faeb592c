"""Net top: a lob drops onto the net pillar and pops back up."""

SCRIPT = {
    "setup": {
        "player1": {"pos": [36, 244], "state": "NORMAL"},
        "player2": {"pos": [396, 244], "state": "NORMAL"},
        "ball":    {"pos": [210, 150], "vel": [-1, 1]},
    },
    "frames": 200,
    "stop_on_ground": True,
}
