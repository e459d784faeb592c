"""Power spike: the left pikachu jumps, swings and drives the ball flat over the net."""

SCRIPT = {
    "serve": "left",
    "setup": {
        "player1": {"pos": [120, 244], "state": "NORMAL"},
        "ball":    {"pos": [126, 100], "vel": [0, 0]},
    },
    "inputs": [
        [[0, -1, 0], [0, 0, 0]],  # jump
        [[0, 0, 0], [0, 0, 0]],
        [[0, 0, 0], [0, 0, 0]],
        [[0, 0, 1], [0, 0, 0]],   # swing
        [[1, 0, 0], [0, 0, 0]],
        [[1, 0, 0], [0, 0, 0]],
        [[1, 0, 0], [0, 0, 0]],
        [[1, 0, 0], [0, 0, 0]],
        [[1, 0, 0], [0, 0, 0]],
        [[1, 0, 0], [0, 0, 0]],
    ],
    "frames": 120,
    "stop_on_ground": True,
}
