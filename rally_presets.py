"""
Rally Presets — canned situations (serve, net top, power spike, hyper ball,
computer vs computer) set up on a fresh controller and run headlessly.
Each preset returns a result dict so tests and demos can inspect it.
"""

from controller import VolleyballController
from physics import PlayerState

_NO_KEYS = (0, 0, 0)


class RallyPreset:
    """Each preset builds a controller → places entities → runs → returns a dict."""

    @staticmethod
    def scenario_1_serve(is_player2_serve: bool = True, run=True) -> dict:
        """Serve: the ball drops onto the serving pikachu's head and bounces off."""
        ctrl = VolleyballController(is_computer1=False, is_computer2=False, seed=1)
        ctrl.initialize_for_new_round(is_player2_serve)
        start = (ctrl.ball.x, ctrl.ball.y, ctrl.ball.x_velocity, ctrl.ball.y_velocity)

        first_hit_frame = None
        ground_frame = None
        if run:
            for frame in range(1, 400):
                touched = ctrl.run_engine_for_next_frame((_NO_KEYS, _NO_KEYS))
                if first_hit_frame is None and any(
                        p.is_collision_with_ball_happened for p in ctrl.players):
                    first_hit_frame = frame
                if touched:
                    ground_frame = frame
                    break
        return {"ctrl": ctrl, "start": start,
                "first_hit_frame": first_hit_frame, "ground_frame": ground_frame}

    @staticmethod
    def scenario_2_net_top(run=True) -> dict:
        """Ball falling onto the top of the net pillar is sent back up."""
        ctrl = VolleyballController(is_computer1=False, is_computer2=False, seed=2)
        ctrl.set_state({"ball": {"pos": [206, 180], "vel": [0, 3]}})
        before = (ctrl.ball.x_velocity, ctrl.ball.y_velocity)
        if run:
            ctrl.run_engine_for_next_frame((_NO_KEYS, _NO_KEYS))
        return {"ctrl": ctrl, "ball": ctrl.ball, "before": before}

    @staticmethod
    def scenario_3_power_spike(keys=(1, 1, 0), run=True) -> dict:
        """Left pikachu mid power swing meets the ball: a downward spike."""
        ctrl = VolleyballController(is_computer1=False, is_computer2=False, seed=3)
        ctrl.set_state({
            "player1": {"pos": [140, 200], "vel_y": 0, "state": PlayerState.JUMP_POWER_HIT.name},
            "ball":    {"pos": [150, 180], "vel": [0, 2]},
        })
        ground_frame = None
        hit = {}
        if run:
            ctrl.run_engine_for_next_frame((keys, _NO_KEYS))
            b = ctrl.ball
            hit = {"x_velocity": b.x_velocity, "y_velocity": b.y_velocity,
                   "punch": (b.punch_effect_x, b.punch_effect_y, b.punch_effect_radius),
                   "is_power_hit": b.is_power_hit,
                   "expected_landing_x": b.expected_landing_point_x}
            for frame in range(2, 200):
                if ctrl.run_engine_for_next_frame((_NO_KEYS, _NO_KEYS)):
                    ground_frame = frame
                    break
        return {"ctrl": ctrl, "hit": hit, "ground_frame": ground_frame,
                "landing_x": ctrl.ball.x}

    @staticmethod
    def scenario_4_hyper_ball(run=True) -> dict:
        """Fine rotation lands exactly on 50: one frame of the hyper ball sprite."""
        ctrl = VolleyballController(is_computer1=False, is_computer2=False, seed=4)
        ctrl.set_state({"ball": {"pos": [100, 50], "vel": [10, 0], "rotation": 45}})
        rotations = []
        if run:
            for _ in range(3):
                ctrl.run_engine_for_next_frame((_NO_KEYS, _NO_KEYS))
                rotations.append((ctrl.ball.fine_rotation, ctrl.ball.rotation))
        return {"ctrl": ctrl, "rotations": rotations}

    @staticmethod
    def scenario_5_computer_rally(seed: int = 7, max_frames: int = 3000, run=True) -> dict:
        """Computer vs computer until the ball touches the ground."""
        ctrl = VolleyballController(is_computer1=True, is_computer2=True, seed=seed)
        ctrl.initialize_for_new_round(False)
        hits = 0
        power_hits = 0
        ground_frame = None
        if run:
            for frame in range(1, max_frames + 1):
                touched = ctrl.run_engine_for_next_frame((None, None))
                for ev in ctrl.physics_events:
                    if ev["type"] == "power_hit":
                        power_hits += 1
                hits += sum(1 for p in ctrl.players if p.is_collision_with_ball_happened)
                if touched:
                    ground_frame = frame
                    break
        return {"ctrl": ctrl, "ground_frame": ground_frame,
                "contact_frames": hits, "power_hits": power_hits}
