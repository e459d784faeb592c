"""
VolleyballController — Layer 2 (Game Logic)

Owns both pikachus, the ball, the shared random source and the physics
engine, and advances them one frame per call. Rendering, sound, keyboard
capture and scoring live outside; they talk to the controller through:

  ctrl.run_engine_for_next_frame(inputs) — advance one frame, True if the ball hit the ground
  ctrl.initialize_for_new_round(serve)   — round restart hook
  ctrl.end_round(is_player2_winner)      — start the win / lose animation
  ctrl.physics_events                    — what happened this frame (for sounds)
  ctrl.last_inputs                       — inputs actually applied (computer sides included)

Headless API (replays, tests, RL):
  ctrl.reset() / ctrl.step(inputs) / ctrl.get_obs()
  ctrl.get_state_json() / ctrl.set_state(state)
  ctrl.start_recording() / ctrl.stop_recording()
  ctrl.execute_script(script) / ctrl.load_script_file(path) / ctrl.reload_script()
"""

import csv
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from computer import decide_keyboard_press
from physics import (
    Ball, Player, PlayerInput, PlayerState, PhysicsEngine,
    calculate_expected_landing_point_x,
)
from rand import RandomSource, SeededRandom

InputLike = Union[PlayerInput, Sequence[int], None]


def _as_input(value: InputLike) -> PlayerInput:
    """Accept a PlayerInput, an (x, y, power_hit) triple or None (no keys)."""
    if value is None:
        return PlayerInput()
    if isinstance(value, PlayerInput):
        return value
    x_direction, y_direction, power_hit = value
    return PlayerInput(int(x_direction), int(y_direction), int(power_hit))


class VolleyballController:
    """Layer 2: frame stepper + round hooks + headless helpers."""

    # ── Class-level constants ─────────────────────────────────────────────────
    DEFAULT_SEED    = 0
    SCRIPT_MAX_FRAMES = 2000

    # Observation layout (one int32 per entry).
    OBS_FIELDS = [
        "p1_x", "p1_y", "p1_vy", "p1_state",
        "p2_x", "p2_y", "p2_vy", "p2_state",
        "ball_x", "ball_y", "ball_vx", "ball_vy", "ball_landing_x",
    ]

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, is_computer1: bool = False, is_computer2: bool = True,
                 rng: Optional[RandomSource] = None, seed: int = DEFAULT_SEED):
        self.is_computer1 = is_computer1
        self.is_computer2 = is_computer2
        self.rng: RandomSource = rng if rng is not None else SeededRandom(seed)
        self.engine = PhysicsEngine()

        # Construction draws boldness for the left then the right player.
        self.player1 = Player(is_player2=False, is_computer=is_computer1)
        self.player1.initialize_for_new_round(self.rng)
        self.player2 = Player(is_player2=True, is_computer=is_computer2)
        self.player2.initialize_for_new_round(self.rng)
        self.ball = Ball()

        self.frame_count = 0
        self.last_inputs: list[PlayerInput] = [PlayerInput(), PlayerInput()]
        self.physics_events: list[dict] = []
        self.status_msg = ""

        # Session recording
        self._session_recording = False
        self._session_rows: list = []
        self._session_file = ""

        # Scripts
        self._last_script_path = ""
        self._last_script: dict = {}

    @property
    def players(self) -> tuple:
        return self.player1, self.player2

    # ──────────────────────────────────────────────────────────────────────────
    # Round hooks
    # ──────────────────────────────────────────────────────────────────────────

    def initialize_for_new_round(self, is_player2_serve: bool) -> None:
        """Reset players and ball; redraws both boldness values (left first)."""
        self.player1.initialize_for_new_round(self.rng)
        self.player2.initialize_for_new_round(self.rng)
        self.ball.initialize_for_new_round(is_player2_serve)

    def end_round(self, is_player2_winner: bool) -> None:
        """Flag the round as over; players switch to WON / LOST once they are NORMAL."""
        self.player1.is_winner = not is_player2_winner
        self.player2.is_winner = is_player2_winner
        self.player1.round_ended = True
        self.player2.round_ended = True

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def run_engine_for_next_frame(self, inputs: Sequence[InputLike] = (None, None)) -> bool:
        """Advance the world by exactly one frame.

        Args:
            inputs: [left input, right input]. The entry of a computer side
                    is ignored and replaced by the computer's decision; read
                    ``last_inputs`` for what was actually applied.

        Returns:
            True if the ball touched the ground this frame.
        """
        if len(inputs) != 2:
            raise ValueError(f"expected 2 inputs, got {len(inputs)}")
        keyboards = [_as_input(inputs[0]), _as_input(inputs[1])]
        ball = self.ball
        players = self.players

        self.engine.events.clear()
        is_ball_touching_ground = self.engine.process_collision_between_ball_and_world(ball)

        for i in range(2):
            player = players[i]
            the_other_player = players[1 - i]
            calculate_expected_landing_point_x(ball)
            if player.is_computer:
                keyboards[i] = decide_keyboard_press(player, ball, the_other_player, self.rng)
            self.engine.process_player_movement(player, keyboards[i])

        for i in range(2):
            self.engine.resolve_ball_player_contact(ball, players[i], keyboards[i], self.rng)

        self.last_inputs = keyboards
        self.physics_events = list(self.engine.events)
        self.frame_count += 1

        if self._session_recording:
            self._session_record_frame(is_ball_touching_ground)

        return is_ball_touching_ground

    # ──────────────────────────────────────────────────────────────────────────
    # Session recording
    # ──────────────────────────────────────────────────────────────────────────

    def _session_make_header(self) -> list:
        cols = ["frame"]
        for n in ("p1", "p2"):
            cols += [f"{n}_x", f"{n}_y", f"{n}_vy", f"{n}_state",
                     f"{n}_key_x", f"{n}_key_y", f"{n}_key_power"]
        cols += ["ball_x", "ball_y", "ball_vx", "ball_vy",
                 "ball_landing_x", "ball_rotation", "ball_power_hit", "ground"]
        return cols

    def _session_record_frame(self, is_ball_touching_ground: bool) -> None:
        row = [self.frame_count]
        for player, keys in zip(self.players, self.last_inputs):
            row += [player.x, player.y, player.y_velocity, player.state.name,
                    keys.x_direction, keys.y_direction, keys.power_hit]
        b = self.ball
        row += [b.x, b.y, b.x_velocity, b.y_velocity, b.expected_landing_point_x,
                b.rotation, int(b.is_power_hit), int(is_ball_touching_ground)]
        self._session_rows.append(row)

    def start_recording(self, path: Optional[str] = None) -> str:
        """Record every following frame; written to CSV by stop_recording()."""
        if path is None:
            path = datetime.now().strftime("%H%M%S") + "_session.csv"
        elif not path.endswith(".csv"):
            path += ".csv"
        self._session_recording = True
        self._session_rows = []
        self._session_file = path
        print(f"[REC] Recording started → {path}")
        return path

    def stop_recording(self) -> str:
        """Write recorded frames and return the file path ("" if nothing was written)."""
        path = self._session_file
        if not path:
            print("[REC] Not recording")
            return ""
        try:
            with open(path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(self._session_make_header())
                writer.writerows(self._session_rows)
            print(f"[REC] Saved {len(self._session_rows)} frames → {path}")
        except OSError as e:
            print(f"[REC] Write failed: {e}")
            path = ""
        self._session_recording = False
        self._session_rows = []
        self._session_file = ""
        return path

    # ──────────────────────────────────────────────────────────────────────────
    # Rally scripts
    # ──────────────────────────────────────────────────────────────────────────

    def collect_script_files(self) -> list:
        """Return sorted list of .py files from the scripts/ dir."""
        scripts_dir = Path(__file__).resolve().parent / "scripts"
        if not scripts_dir.is_dir():
            return []
        return sorted(p for p in scripts_dir.glob("*.py") if not p.name.startswith("_"))

    def execute_script(self, script: dict) -> dict:
        """Run a rally script headlessly.

        Format::

            SCRIPT = {
                "serve": "left",                       # optional new round first
                "setup": {"ball": {...}, "player1": {...}},   # set_state() payload
                "inputs": [[[x, y, p], [x, y, p]], ...],      # one pair per frame
                "frames": 60,                          # total frames (default len(inputs))
                "stop_on_ground": True,
            }

        Frames beyond the ``inputs`` list run with no keys pressed.

        Returns:
            dict with ``frames`` run, ``ground_frame`` (1-based, or None),
            ``events`` (list of (frame, event)) and the final ``state``.
        """
        self._last_script = script
        serve = script.get("serve")
        if serve is not None:
            self.initialize_for_new_round(serve == "right")
        setup = script.get("setup")
        if setup:
            self.set_state(setup)

        inputs = script.get("inputs", [])
        total = int(script.get("frames", len(inputs)))
        if total > self.SCRIPT_MAX_FRAMES:
            raise ValueError(f"script asks for {total} frames (max {self.SCRIPT_MAX_FRAMES})")
        stop_on_ground = bool(script.get("stop_on_ground", True))

        ground_frame = None
        events = []
        frames_run = 0
        for i in range(total):
            pair = inputs[i] if i < len(inputs) else (None, None)
            touched = self.run_engine_for_next_frame(pair)
            frames_run += 1
            events.extend((frames_run, ev) for ev in self.physics_events)
            if touched and ground_frame is None:
                ground_frame = frames_run
                if stop_on_ground:
                    break

        self.status_msg = f"Script: {frames_run} frame(s) run."
        return {
            "frames": frames_run,
            "ground_frame": ground_frame,
            "events": events,
            "state": json.loads(self.get_state_json()),
        }

    def load_script_file(self, path: str) -> Optional[dict]:
        """Load and execute a rally script from a .py file defining SCRIPT."""
        import importlib.util
        abs_path = os.path.abspath(path)
        if not os.path.exists(abs_path):
            self.status_msg = f"Script not found: {abs_path}"
            return None
        spec = importlib.util.spec_from_file_location("_user_rally_script", abs_path)
        mod = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(mod)
        except Exception as exc:
            self.status_msg = f"Script error: {exc}"
            print(f"[SCRIPT] {os.path.basename(abs_path)}: {exc}")
            return None
        script = getattr(mod, "SCRIPT", None)
        if script is None:
            self.status_msg = f"No SCRIPT variable in {os.path.basename(abs_path)}"
            return None
        self._last_script_path = abs_path
        print(f"[SCRIPT] running {os.path.basename(abs_path)}")
        return self.execute_script(script)

    def reload_script(self) -> Optional[dict]:
        """Re-execute the last loaded script file, or the last script dict run."""
        if self._last_script_path:
            return self.load_script_file(self._last_script_path)
        if self._last_script:
            return self.execute_script(self._last_script)
        self.status_msg = "No script loaded yet.  Call load_script_file(path) first."
        return None

    # ──────────────────────────────────────────────────────────────────────────
    # Headless API
    # ──────────────────────────────────────────────────────────────────────────

    def get_state_json(self) -> str:
        """Return the current world as a compact set_state() payload."""
        state = {}
        for name, p in (("player1", self.player1), ("player2", self.player2)):
            state[name] = {
                "pos":      [p.x, p.y],
                "vel_y":    p.y_velocity,
                "state":    p.state.name,
                "boldness": p.boldness,
            }
        b = self.ball
        state["ball"] = {
            "pos":        [b.x, b.y],
            "vel":        [b.x_velocity, b.y_velocity],
            "rotation":   b.fine_rotation,
            "power_hit":  b.is_power_hit,
            "landing_x":  b.expected_landing_point_x,
        }
        return json.dumps(state, separators=(',', ':'))

    def set_state(self, state: dict) -> "VolleyballController":
        """Place players / ball without simulating.

        Accepts the get_state_json() format; any key may be omitted::

            ctrl.set_state({
                "ball":    {"pos": [200, 150], "vel": [0, 3]},
                "player1": {"pos": [190, 200], "state": "JUMP_POWER_HIT"},
            })

        Returns:
            ``self`` for chaining.
        """
        unknown = set(state) - {"player1", "player2", "ball"}
        if unknown:
            raise ValueError(f"set_state: unknown keys {sorted(unknown)}")

        for name, player in (("player1", self.player1), ("player2", self.player2)):
            pd = state.get(name)
            if pd is None:
                continue
            if "pos" in pd:
                player.x, player.y = int(pd["pos"][0]), int(pd["pos"][1])
            if "vel_y" in pd:
                player.y_velocity = int(pd["vel_y"])
            if "state" in pd:
                try:
                    player.state = PlayerState[pd["state"]]
                except KeyError:
                    raise ValueError(f"set_state: unknown player state {pd['state']!r}") from None
            if "boldness" in pd:
                player.boldness = int(pd["boldness"])

        bd = state.get("ball")
        if bd is not None:
            b = self.ball
            if "pos" in bd:
                b.x, b.y = int(bd["pos"][0]), int(bd["pos"][1])
            if "vel" in bd:
                b.x_velocity, b.y_velocity = int(bd["vel"][0]), int(bd["vel"][1])
            if "rotation" in bd:
                b.fine_rotation = int(bd["rotation"])
                b.rotation = b.fine_rotation // 10
            if "power_hit" in bd:
                b.is_power_hit = bool(bd["power_hit"])
            if "landing_x" in bd:
                b.expected_landing_point_x = int(bd["landing_x"])
        return self

    def get_obs(self) -> np.ndarray:
        """Return the world as a flat int32 vector laid out as OBS_FIELDS."""
        p1, p2, b = self.player1, self.player2, self.ball
        return np.array([
            p1.x, p1.y, p1.y_velocity, p1.state.value,
            p2.x, p2.y, p2.y_velocity, p2.state.value,
            b.x, b.y, b.x_velocity, b.y_velocity, b.expected_landing_point_x,
        ], dtype=np.int32)

    def reset(self, is_player2_serve: bool = False) -> np.ndarray:
        """Start a new round and return the observation. Equivalent to Gym ``env.reset()``."""
        self.initialize_for_new_round(is_player2_serve)
        self.frame_count = 0
        self.last_inputs = [PlayerInput(), PlayerInput()]
        self.physics_events = []
        return self.get_obs()

    def step(self, inputs: Sequence[InputLike] = (None, None)) -> dict:
        """Advance one frame; returns obs, ground flag, applied inputs and events."""
        touched = self.run_engine_for_next_frame(inputs)
        return {
            "obs":                self.get_obs(),
            "ball_touched_ground": touched,
            "inputs":             [(k.x_direction, k.y_direction, k.power_hit)
                                   for k in self.last_inputs],
            "events":             list(self.physics_events),
            "frame":              self.frame_count,
        }
