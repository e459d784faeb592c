"""Dive: the left pikachu lunges right, lies down for a few frames, then gets up."""

SCRIPT = {
    "serve": "left",
    "setup": {
        "player1": {"pos": [100, 244], "state": "NORMAL"},
        "ball":    {"pos": [300, 0], "vel": [0, 1]},
    },
    "inputs": [
        [[1, 0, 1], [0, 0, 0]],   # run right + power hit on the ground → dive
    ],
    "frames": 18,
    "stop_on_ground": False,
}
