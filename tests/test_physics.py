"""
Physics Engine Tests — frame-exact checks of the integer world.

Ball vs world (walls, ceiling, net, ground, rotation), the two landing-point
predictors, player movement / animation and ball vs player hits.
Expected values are worked out by hand from the fixed-point rules.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import physics
from physics import (
    Ball, Player, PlayerInput, PlayerState, PhysicsEngine,
    TrajectoryPredictionError, expected_landing_point_x,
    expected_landing_point_x_when_power_hit, calculate_expected_landing_point_x,
    LIVE_NET_RULE, PREDICTION_NET_RULE, POWER_HIT_PREDICTION_NET_RULE,
    BALL_TOUCHING_GROUND_Y, PLAYER_TOUCHING_GROUND_Y,
)
from rand import SequenceRandom


# ── Helpers ──────────────────────────────────────────────

def make_ball(x, y, x_velocity=0, y_velocity=0, **kwargs) -> Ball:
    return Ball(x=x, y=y, x_velocity=x_velocity, y_velocity=y_velocity, **kwargs)


def make_player(is_player2=False, **kwargs) -> Player:
    return Player(is_player2=is_player2, is_computer=False, **kwargs)


def run_frames(engine, player, frames, keys=None):
    keys = keys or PlayerInput()
    for _ in range(frames):
        engine.process_player_movement(player, keys)


# ── Ball vs world ────────────────────────────────────────

class TestBallWorldCollision:

    def test_right_serve_first_frame(self):
        ball = Ball()
        ball.initialize_for_new_round(True)
        assert (ball.x, ball.y, ball.x_velocity, ball.y_velocity) == (376, 0, 0, 1)

        touched = PhysicsEngine().process_collision_between_ball_and_world(ball)

        assert touched is False
        assert ball.y == 1
        assert ball.y_velocity == 2
        assert ball.x == 376

    def test_right_wall_reflects_on_future_position(self):
        ball = make_ball(425, 100, x_velocity=10)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.x_velocity == -10
        assert ball.x == 415

    def test_left_wall_reflects_on_future_position(self):
        ball = make_ball(25, 100, x_velocity=-6)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.x_velocity == 6
        assert ball.x == 31

    def test_right_wall_lets_ball_overlap_by_radius(self):
        """The right bound is tested with the center at 432, not 432 - radius."""
        ball = make_ball(430, 100, x_velocity=2)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.x == 432
        assert ball.x_velocity == 2

    def test_ceiling_forces_downward_velocity(self):
        ball = make_ball(100, 2, y_velocity=-5)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.y == 3
        assert ball.y_velocity == 2

    @pytest.mark.parametrize("x", [216 - 24, 216 + 24])
    def test_net_top_reflects_falling_ball(self, x):
        ball = make_ball(x, 180, x_velocity=3, y_velocity=4)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.x_velocity == 3
        assert ball.y == 176           # 180 + (-4)
        assert ball.y_velocity == -3   # -4 + gravity

    def test_net_top_leaves_rising_ball_alone(self):
        ball = make_ball(210, 180, y_velocity=-4)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.y == 176
        assert ball.y_velocity == -3

    def test_net_zone_is_open_at_25(self):
        ball = make_ball(216 - 25, 180, y_velocity=4)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.y == 184
        assert ball.y_velocity == 5

    def test_net_side_pushes_left_ball_left(self):
        ball = make_ball(200, 200, x_velocity=5, y_velocity=1)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.x_velocity == -5
        assert ball.x == 195

    def test_net_side_pushes_right_ball_right(self):
        ball = make_ball(230, 200, x_velocity=-5, y_velocity=1)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.x_velocity == 5
        assert ball.x == 235

    def test_ground_touch(self):
        engine = PhysicsEngine()
        ball = make_ball(100, 250, x_velocity=4, y_velocity=5,
                         previous_x=96, previous_y=245)

        touched = engine.process_collision_between_ball_and_world(ball)

        assert touched is True
        assert ball.y == BALL_TOUCHING_GROUND_Y
        assert ball.y_velocity == -5
        assert ball.x == 100, "no horizontal move on the ground frame"
        assert (ball.punch_effect_x, ball.punch_effect_y, ball.punch_effect_radius) == (100, 272, 20)
        assert (ball.previous_x, ball.previous_y) == (96, 245)
        assert engine.events == [{"type": "ball_ground", "x": 100}]

    def test_trailing_history_shifts_each_frame(self):
        engine = PhysicsEngine()
        ball = make_ball(100, 50, x_velocity=3, y_velocity=0)
        engine.process_collision_between_ball_and_world(ball)
        engine.process_collision_between_ball_and_world(ball)
        assert (ball.previous_previous_x, ball.previous_previous_y) == (103, 50)
        assert (ball.previous_x, ball.previous_y) == (106, 51)


class TestRotation:

    def test_half_velocity_truncates_toward_zero(self):
        ball = make_ball(100, 50, x_velocity=-3, fine_rotation=10)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.fine_rotation == 9   # floor division would give 8
        assert ball.rotation == 0

    def test_wraps_below_zero(self):
        ball = make_ball(100, 50, x_velocity=-10, fine_rotation=2)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.fine_rotation == 47
        assert ball.rotation == 4

    def test_wraps_above_fifty(self):
        ball = make_ball(100, 50, x_velocity=10, fine_rotation=48)
        PhysicsEngine().process_collision_between_ball_and_world(ball)
        assert ball.fine_rotation == 3

    def test_hyper_ball_glitch(self):
        """Landing exactly on 50 survives the wrap and selects sprite 5 for one frame."""
        engine = PhysicsEngine()
        ball = make_ball(100, 50, x_velocity=10, fine_rotation=45)

        engine.process_collision_between_ball_and_world(ball)
        assert (ball.fine_rotation, ball.rotation) == (50, 5)

        engine.process_collision_between_ball_and_world(ball)
        assert (ball.fine_rotation, ball.rotation) == (5, 0)

    def test_hyper_ball_persists_while_ball_has_no_x_velocity(self):
        engine = PhysicsEngine()
        ball = make_ball(100, 50, x_velocity=0, fine_rotation=50)
        for _ in range(5):
            engine.process_collision_between_ball_and_world(ball)
        assert ball.rotation == 5


# ── Trajectory prediction ────────────────────────────────

class TestTrajectoryPredictor:

    def test_straight_drop(self):
        assert expected_landing_point_x(make_ball(100, 0, 0, 1)) == 100

    def test_prediction_is_pure(self):
        ball = make_ball(50, 20, x_velocity=7, y_velocity=-3)
        snapshot = ball.copy()
        first = expected_landing_point_x(ball)
        second = expected_landing_point_x(ball)
        assert first == second
        assert ball == snapshot

    def test_matches_live_flight_away_from_net(self):
        ball = make_ball(50, 0, x_velocity=3, y_velocity=1)
        predicted = expected_landing_point_x(ball)

        engine = PhysicsEngine()
        live = ball.copy()
        for _ in range(100):
            if engine.process_collision_between_ball_and_world(live):
                break
        assert live.x == predicted

    def test_predictor_splits_net_zone_at_192(self):
        """At y=192 the predictor already uses the pillar side; the live ball still bounces."""
        ball = make_ball(210, 192, x_velocity=2, y_velocity=2)
        assert expected_landing_point_x(ball) == 192

        live = ball.copy()
        PhysicsEngine().process_collision_between_ball_and_world(live)
        assert live.x_velocity == 2
        assert live.y == 190

    def test_net_rules(self):
        assert LIVE_NET_RULE(210, 192, 5, 3) == (5, -3)
        assert PREDICTION_NET_RULE(210, 192, 5, 3) == (-5, 3)
        assert PREDICTION_NET_RULE(220, 200, -5, 3) == (5, 3)
        # power-hit guess reflects downward motion below 193 too and never pushes sideways
        assert POWER_HIT_PREDICTION_NET_RULE(210, 200, 5, 3) == (5, -3)
        assert POWER_HIT_PREDICTION_NET_RULE(210, 200, 5, -3) == (5, -3)
        assert POWER_HIT_PREDICTION_NET_RULE(210, 180, 5, 3) == (5, -3)

    @pytest.mark.parametrize("keys, landing", [
        ((0, 1), 120),   # vx 10, vy 10: 230 → 240 → 251 → ground
        ((1, 1), 140),   # vx 20
        ((-1, 1), 140),  # sign of x key is ignored
    ])
    def test_power_hit_landing_left_court(self, keys, landing):
        ball = make_ball(100, 230, x_velocity=-3, y_velocity=5)
        assert expected_landing_point_x_when_power_hit(keys[0], keys[1], ball) == landing

    def test_power_hit_from_right_court_goes_left(self):
        ball = make_ball(300, 230, y_velocity=-5)
        assert expected_landing_point_x_when_power_hit(0, 1, ball) == 280

    def test_power_hit_prediction_does_not_touch_ball(self):
        ball = make_ball(100, 230, x_velocity=-3, y_velocity=5)
        snapshot = ball.copy()
        expected_landing_point_x_when_power_hit(1, -1, ball)
        assert ball == snapshot

    def test_step_cap_raises(self, monkeypatch):
        monkeypatch.setattr(physics, "MAX_PREDICTION_STEPS", 5)
        with pytest.raises(TrajectoryPredictionError):
            expected_landing_point_x(make_ball(100, 0, 0, 1))

    def test_default_cap_covers_a_full_court_flight(self):
        assert expected_landing_point_x(make_ball(20, 0, 20, -15)) >= 0

    def test_calculate_caches_on_ball(self):
        ball = make_ball(80, 0, 0, 1)
        calculate_expected_landing_point_x(ball)
        assert ball.expected_landing_point_x == 80


# ── Player movement ──────────────────────────────────────

class TestPlayerConstruction:

    def test_serve_x_by_side(self):
        assert make_player().x == 36
        assert make_player(is_player2=True).x == 396

    @pytest.mark.parametrize("is_player2, x", [(True, 36), (False, 396), (True, 300)])
    def test_explicit_x_kept(self, is_player2, x):
        assert make_player(is_player2=is_player2, x=x).x == x


class TestPlayerMovement:

    def test_jump_then_gravity(self):
        engine = PhysicsEngine()
        player = make_player(x=100)

        engine.process_player_movement(player, PlayerInput(0, -1, 0))
        assert player.state == PlayerState.JUMPING
        assert player.y == PLAYER_TOUCHING_GROUND_Y - 16
        assert player.y_velocity == -15
        assert engine.events == [{"type": "jump", "player": "left"}]

        engine.process_player_movement(player, PlayerInput())
        assert player.y == 228 - 15
        assert player.y_velocity == -14

    def test_no_jump_in_the_air(self):
        engine = PhysicsEngine()
        player = make_player(x=100, y=200, y_velocity=-3, state=PlayerState.JUMPING)
        engine.process_player_movement(player, PlayerInput(0, -1, 0))
        assert player.y == 197
        assert player.y_velocity == -2

    def test_landing_returns_to_normal(self):
        engine = PhysicsEngine()
        player = make_player(x=100, y=240, y_velocity=6, state=PlayerState.JUMPING)
        engine.process_player_movement(player, PlayerInput())
        assert player.y == PLAYER_TOUCHING_GROUND_Y
        assert player.y_velocity == 0
        assert player.state == PlayerState.NORMAL

    @pytest.mark.parametrize("is_player2, x, key, expected", [
        (False, 180, 1, 184),
        (False, 34, -1, 32),
        (True, 250, -1, 248),
        (True, 398, 1, 400),
        (False, 100, 1, 106),
    ])
    def test_half_court_clamp(self, is_player2, x, key, expected):
        player = make_player(is_player2=is_player2, x=x)
        PhysicsEngine().process_player_movement(player, PlayerInput(key, 0, 0))
        assert player.x == expected

    def test_dive_lie_down_and_get_up(self):
        engine = PhysicsEngine()
        player = make_player(x=100)

        engine.process_player_movement(player, PlayerInput(1, 0, 1))
        assert player.state == PlayerState.DIVING
        assert player.diving_direction == 1
        assert player.y_velocity == -5
        assert player.x == 106

        engine.process_player_movement(player, PlayerInput(-1, 0, 0))
        assert player.x == 114, "diving ignores the x key"

        run_frames(engine, player, 10)          # frame 12: back on the ground line
        assert player.state == PlayerState.DIVING
        assert player.y == PLAYER_TOUCHING_GROUND_Y

        run_frames(engine, player, 1)           # frame 13: lands
        assert player.state == PlayerState.LYING_DOWN
        assert player.lying_down_frames_left == 3
        assert player.x == 184

        run_frames(engine, player, 4, PlayerInput(-1, -1, 1))
        assert player.state == PlayerState.LYING_DOWN
        assert player.x == 184

        run_frames(engine, player, 1)           # frame 18
        assert player.state == PlayerState.NORMAL

    def test_dive_needs_x_key(self):
        player = make_player(x=100)
        PhysicsEngine().process_player_movement(player, PlayerInput(0, 0, 1))
        assert player.state == PlayerState.NORMAL

    def test_power_swing_from_jump(self):
        engine = PhysicsEngine()
        player = make_player(x=100, y=150, y_velocity=-5, state=PlayerState.JUMPING)
        engine.process_player_movement(player, PlayerInput(0, 0, 1))
        assert player.state == PlayerState.JUMP_POWER_HIT
        assert player.frame_number == 0
        assert player.delay_before_next_frame == 4
        assert {"type": "power_swing", "player": "left"} in engine.events

    def test_power_swing_reverts_to_jumping(self):
        engine = PhysicsEngine()
        player = make_player(x=100, y=100, state=PlayerState.JUMP_POWER_HIT,
                             frame_number=4, delay_before_next_frame=0)
        engine.process_player_movement(player, PlayerInput())
        assert player.state == PlayerState.JUMPING
        assert player.frame_number == 0

    def test_jumping_frames_cycle(self):
        engine = PhysicsEngine()
        player = make_player(x=100, y=100, state=PlayerState.JUMPING, frame_number=2)
        engine.process_player_movement(player, PlayerInput())
        assert player.frame_number == 0

    def test_normal_arm_swing(self):
        engine = PhysicsEngine()
        player = make_player(x=100)
        run_frames(engine, player, 4)
        assert player.frame_number == 1

        player = make_player(x=100, frame_number=4, delay_before_next_frame=3)
        engine.process_player_movement(player, PlayerInput())
        assert player.arm_swing_direction == -1
        assert player.frame_number == 3

    @pytest.mark.parametrize("is_winner, final_state", [
        (True, PlayerState.WON), (False, PlayerState.LOST),
    ])
    def test_end_of_round(self, is_winner, final_state):
        engine = PhysicsEngine()
        player = make_player(x=100, is_winner=is_winner, round_ended=True)

        engine.process_player_movement(player, PlayerInput())
        assert player.state == final_state
        assert player.frame_number == 0

        run_frames(engine, player, 4, PlayerInput(1, -1, 1))
        assert player.state == final_state
        assert player.frame_number == 1
        assert player.x == 100
        assert player.y == PLAYER_TOUCHING_GROUND_Y

    def test_win_event_only_for_winner(self):
        engine = PhysicsEngine()
        winner = make_player(x=100, is_winner=True, round_ended=True)
        loser = make_player(is_player2=True, x=300, round_ended=True)
        engine.process_player_movement(winner, PlayerInput())
        engine.process_player_movement(loser, PlayerInput())
        assert [ev["type"] for ev in engine.events] == ["win"]

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError):
            make_player(state=3)

        player = make_player()
        player.state = "flying"
        with pytest.raises(ValueError):
            PhysicsEngine().process_player_movement(player, PlayerInput())

    def test_input_range_checked(self):
        with pytest.raises(ValueError):
            PlayerInput(2, 0, 0)
        with pytest.raises(ValueError):
            PlayerInput(0, 0, -1)


# ── Ball vs player ───────────────────────────────────────

class TestBallPlayerCollision:

    def test_overlap_box(self):
        ball = make_ball(100, 100)
        assert PhysicsEngine.is_collision_between_ball_and_player(ball, 132, 132)
        assert not PhysicsEngine.is_collision_between_ball_and_player(ball, 133, 100)
        assert not PhysicsEngine.is_collision_between_ball_and_player(ball, 100, 67)

    def test_ball_left_of_player_goes_left(self):
        ball = make_ball(100, 200, x_velocity=5, y_velocity=5)
        PhysicsEngine().process_collision_between_ball_and_player(
            ball, 110, PlayerInput(), PlayerState.NORMAL, SequenceRandom([]))
        assert ball.x_velocity == -3
        assert ball.y_velocity == -15
        assert ball.is_power_hit is False

    def test_ball_right_of_player_goes_right(self):
        ball = make_ball(130, 200, y_velocity=20)
        PhysicsEngine().process_collision_between_ball_and_player(
            ball, 110, PlayerInput(), PlayerState.JUMPING, SequenceRandom([]))
        assert ball.x_velocity == 6
        assert ball.y_velocity == -20

    @pytest.mark.parametrize("drawn, kick", [(0, -1), (1, 0), (2, 1), (5, 1)])
    def test_zero_x_velocity_kick(self, drawn, kick):
        rng = SequenceRandom([drawn])
        ball = make_ball(110, 200, x_velocity=0, y_velocity=3)
        PhysicsEngine().process_collision_between_ball_and_player(
            ball, 110, PlayerInput(), PlayerState.NORMAL, rng)
        assert ball.x_velocity == kick
        assert rng.draws == 1

    def test_small_offset_also_kicks(self):
        rng = SequenceRandom([2])
        ball = make_ball(111, 200, x_velocity=9, y_velocity=3)
        PhysicsEngine().process_collision_between_ball_and_player(
            ball, 110, PlayerInput(), PlayerState.NORMAL, rng)
        assert ball.x_velocity == 1
        assert rng.draws == 1

    def test_centered_ball_keeps_x_velocity(self):
        rng = SequenceRandom([])
        ball = make_ball(110, 200, x_velocity=4, y_velocity=3)
        PhysicsEngine().process_collision_between_ball_and_player(
            ball, 110, PlayerInput(), PlayerState.NORMAL, rng)
        assert ball.x_velocity == 4
        assert rng.draws == 0

    @pytest.mark.parametrize("ball_x, keys, x_velocity, y_velocity", [
        (200, (1, 1, 0), 20, 30),
        (200, (0, 0, 0), 10, 0),
        (200, (-1, -1, 0), 20, -30),
        (250, (1, 1, 0), -20, 30),
    ])
    def test_power_hit(self, ball_x, keys, x_velocity, y_velocity):
        engine = PhysicsEngine()
        ball = make_ball(ball_x, 150, x_velocity=-2, y_velocity=3)
        engine.process_collision_between_ball_and_player(
            ball, ball_x - 10, PlayerInput(*keys), PlayerState.JUMP_POWER_HIT, SequenceRandom([]))

        assert ball.x_velocity == x_velocity
        assert ball.y_velocity == y_velocity
        assert ball.is_power_hit is True
        assert (ball.punch_effect_x, ball.punch_effect_y, ball.punch_effect_radius) == (ball_x, 150, 20)
        assert engine.events == [{"type": "power_hit", "x": ball_x, "y": 150}]

    def test_normal_hit_clears_power_hit(self):
        ball = make_ball(200, 150, y_velocity=3, is_power_hit=True)
        PhysicsEngine().process_collision_between_ball_and_player(
            ball, 190, PlayerInput(1, 1, 1), PlayerState.JUMPING, SequenceRandom([]))
        assert ball.is_power_hit is False

    def test_hit_refreshes_landing_point(self):
        ball = make_ball(200, 150, y_velocity=3, expected_landing_point_x=-1)
        PhysicsEngine().process_collision_between_ball_and_player(
            ball, 190, PlayerInput(1, 1, 0), PlayerState.JUMP_POWER_HIT, SequenceRandom([]))
        assert ball.expected_landing_point_x == expected_landing_point_x(ball)

    def test_rising_edge_latch(self):
        engine = PhysicsEngine()
        rng = SequenceRandom([])
        player = make_player(x=100, y=200)
        ball = make_ball(110, 190, y_velocity=4)

        assert engine.resolve_ball_player_contact(ball, player, PlayerInput(), rng) is True
        assert player.is_collision_with_ball_happened is True
        velocity = (ball.x_velocity, ball.y_velocity)

        ball.y_velocity = 7
        assert engine.resolve_ball_player_contact(ball, player, PlayerInput(), rng) is None
        assert ball.y_velocity == 7
        assert velocity == (3, -15)

        ball.y = 100
        assert engine.resolve_ball_player_contact(ball, player, PlayerInput(), rng) is False
        assert player.is_collision_with_ball_happened is False
