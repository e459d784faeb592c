"""
Pikachu Volleyball Physics Engine
Fixed-point world: integer positions and velocities, one call = one frame.

  X: [0, 432], right increasing       Y: [0, 304], down increasing
  Ball radius 20 (diameter 40)        Player half-width / half-height 32

Frame rate is not part of the simulation: the caller paces frames at
20, 25 or 30 Hz.
"""

import dataclasses
import enum
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from rand import RandomSource

# ──────────────────────────────────────────────
# Constants (pixels, frames)
# ──────────────────────────────────────────────
GROUND_WIDTH: int = 432
GROUND_HALF_WIDTH: int = 216  # net center x

BALL_RADIUS: int = 20
BALL_TOUCHING_GROUND_Y: int = 252
BALL_LEFT_SERVE_X: int = 56
BALL_RIGHT_SERVE_X: int = 376

NET_PILLAR_HALF_WIDTH: int = 25
NET_PILLAR_TOP_TOP_Y: int = 176
NET_PILLAR_TOP_BOTTOM_Y: int = 193
# The landing-point predictor splits the net zone one pixel higher than the
# live collision does. Both values are part of the replay contract.
PREDICTION_NET_PILLAR_TOP_BOTTOM_Y: int = 192

PLAYER_HALF_LENGTH: int = 32
PLAYER_TOUCHING_GROUND_Y: int = 244
PLAYER_LEFT_SERVE_X: int = 36
PLAYER_RIGHT_SERVE_X: int = 396

GRAVITY: int = 1
PLAYER_RUN_SPEED: int = 6
PLAYER_DIVE_SPEED: int = 8
PLAYER_JUMP_VELOCITY: int = -16
PLAYER_DIVE_Y_VELOCITY: int = -5
LYING_DOWN_FRAMES: int = 3
POWER_HIT_SWING_DELAY: int = 5

BALL_PLAYER_COLLISION_RANGE: int = 33
MIN_BOUNCE_Y_VELOCITY: int = 15
POWER_HIT_X_SPEED_UNIT: int = 10
PUNCH_EFFECT_RADIUS: int = 20
GROUND_PUNCH_EFFECT_Y: int = 272

FINE_ROTATION_PERIOD: int = 50
MAX_PREDICTION_STEPS: int = 1000


class TrajectoryPredictionError(RuntimeError):
    """A predicted trajectory did not reach the ground within MAX_PREDICTION_STEPS."""


class PlayerState(enum.Enum):
    NORMAL = 0
    JUMPING = 1
    JUMP_POWER_HIT = 2
    DIVING = 3
    LYING_DOWN = 4
    WON = 5
    LOST = 6


# States in which keyboard x-input moves the player.
_RUNNING_STATES = (PlayerState.NORMAL, PlayerState.JUMPING, PlayerState.JUMP_POWER_HIT)
_END_OF_ROUND_STATES = (PlayerState.WON, PlayerState.LOST)


@dataclass
class PlayerInput:
    """One frame of keyboard intent for one player."""
    x_direction: int = 0   # -1 left, 0, 1 right
    y_direction: int = 0   # -1 up (jump), 0, 1 down
    power_hit: int = 0     # 1 on the frame the key went down

    def __post_init__(self):
        if self.x_direction not in (-1, 0, 1) or self.y_direction not in (-1, 0, 1):
            raise ValueError(
                f"direction out of range: x={self.x_direction!r} y={self.y_direction!r}")
        if self.power_hit not in (0, 1):
            raise ValueError(f"power_hit must be 0 or 1, got {self.power_hit!r}")


@dataclass
class Player:
    """A pikachu. Side and controller are fixed for the whole match."""
    is_player2: bool
    is_computer: bool
    x: Optional[int] = None          # serve x of its side when omitted
    y: int = PLAYER_TOUCHING_GROUND_Y
    y_velocity: int = 0
    is_collision_with_ball_happened: bool = False
    state: PlayerState = PlayerState.NORMAL
    frame_number: int = 0
    arm_swing_direction: int = 1
    delay_before_next_frame: int = 0
    boldness: int = 0

    # Set once at construction, not by a new round.
    diving_direction: int = 0          # -1, 0 or 1; meaningful while DIVING
    lying_down_frames_left: int = -1   # meaningful while LYING_DOWN
    is_winner: bool = False
    round_ended: bool = False
    standby_preference: int = 0        # 0: mid-court, 1: next to the net

    def __post_init__(self):
        if not isinstance(self.state, PlayerState):
            raise ValueError(f"unknown player state: {self.state!r}")
        if self.x is None:
            self.x = PLAYER_RIGHT_SERVE_X if self.is_player2 else PLAYER_LEFT_SERVE_X

    @property
    def side(self) -> str:
        return "right" if self.is_player2 else "left"

    def initialize_for_new_round(self, rng: RandomSource) -> None:
        self.x = PLAYER_RIGHT_SERVE_X if self.is_player2 else PLAYER_LEFT_SERVE_X
        self.y = PLAYER_TOUCHING_GROUND_Y
        self.y_velocity = 0
        self.is_collision_with_ball_happened = False
        self.state = PlayerState.NORMAL
        self.frame_number = 0
        self.arm_swing_direction = 1
        self.delay_before_next_frame = 0
        self.boldness = rng.next_int() % 5


@dataclass
class Ball:
    """The volleyball, plus the cosmetic values a renderer reads from it."""
    x: int = BALL_LEFT_SERVE_X
    y: int = 0
    x_velocity: int = 0
    y_velocity: int = 1
    punch_effect_radius: int = 0
    is_power_hit: bool = False

    # Survive new rounds.
    expected_landing_point_x: int = 0
    rotation: int = 0        # sprite index 0-4, 5 is the hyper ball
    fine_rotation: int = 0
    punch_effect_x: int = 0
    punch_effect_y: int = 0
    previous_x: int = 0
    previous_previous_x: int = 0
    previous_y: int = 0
    previous_previous_y: int = 0

    def initialize_for_new_round(self, is_player2_serve: bool) -> None:
        self.x = BALL_RIGHT_SERVE_X if is_player2_serve else BALL_LEFT_SERVE_X
        self.y = 0
        self.x_velocity = 0
        self.y_velocity = 1
        self.punch_effect_radius = 0
        self.is_power_hit = False

    def copy(self) -> "Ball":
        return dataclasses.replace(self)


# ──────────────────────────────────────────────
# Net-zone rules
# ──────────────────────────────────────────────
# A rule receives (x, y, x_velocity, y_velocity) of a ball already known to
# be inside the net zone and returns the new (x_velocity, y_velocity).
NetRule = Callable[[int, int, int, int], Tuple[int, int]]


def _push_away_from_net(net_top_bottom_y: int) -> NetRule:
    """Above net_top_bottom_y bounce off the pillar top, below it off the pillar side."""
    def rule(x: int, y: int, x_velocity: int, y_velocity: int) -> Tuple[int, int]:
        if y < net_top_bottom_y:
            if y_velocity > 0:
                y_velocity = -y_velocity
        elif x < GROUND_HALF_WIDTH:
            x_velocity = -abs(x_velocity)
        else:
            x_velocity = abs(x_velocity)
        return x_velocity, y_velocity
    return rule


def _power_hit_net_rule(x: int, y: int, x_velocity: int, y_velocity: int) -> Tuple[int, int]:
    # Both branches reflect downward motion and neither touches x_velocity,
    # so the AI's power-hit guess never sees the pillar side.
    if y < NET_PILLAR_TOP_BOTTOM_Y:
        if y_velocity > 0:
            y_velocity = -y_velocity
    elif y_velocity > 0:
        y_velocity = -y_velocity
    return x_velocity, y_velocity


LIVE_NET_RULE: NetRule = _push_away_from_net(NET_PILLAR_TOP_BOTTOM_Y)
PREDICTION_NET_RULE: NetRule = _push_away_from_net(PREDICTION_NET_PILLAR_TOP_BOTTOM_Y)
POWER_HIT_PREDICTION_NET_RULE: NetRule = _power_hit_net_rule


def _reflect_off_world(x: int, y: int, x_velocity: int, y_velocity: int,
                       net_rule: NetRule) -> Tuple[int, int]:
    """Wall, ceiling and net velocity changes for one frame (position untouched).

    The side walls are tested with the ball center against 20 and 432, so the
    right wall lets the ball overlap by its radius.
    """
    future_x = x + x_velocity
    if future_x < BALL_RADIUS or future_x > GROUND_WIDTH:
        x_velocity = -x_velocity

    if y + y_velocity < 0:
        y_velocity = 1

    if abs(x - GROUND_HALF_WIDTH) < NET_PILLAR_HALF_WIDTH and y > NET_PILLAR_TOP_TOP_Y:
        x_velocity, y_velocity = net_rule(x, y, x_velocity, y_velocity)

    return x_velocity, y_velocity


def _landing_point_x(x: int, y: int, x_velocity: int, y_velocity: int,
                     net_rule: NetRule) -> int:
    for _ in range(MAX_PREDICTION_STEPS):
        x_velocity, y_velocity = _reflect_off_world(x, y, x_velocity, y_velocity, net_rule)
        y += y_velocity
        if y > BALL_TOUCHING_GROUND_Y:
            return x
        x += x_velocity
        y_velocity += GRAVITY
    raise TrajectoryPredictionError(
        f"ball did not land within {MAX_PREDICTION_STEPS} frames "
        f"(x={x}, y={y}, vx={x_velocity}, vy={y_velocity})")


# ──────────────────────────────────────────────
# Trajectory prediction
# ──────────────────────────────────────────────
def expected_landing_point_x(ball: Ball) -> int:
    """x where the ball's current trajectory would hit the ground. Pure."""
    return _landing_point_x(ball.x, ball.y, ball.x_velocity, ball.y_velocity,
                            PREDICTION_NET_RULE)


def expected_landing_point_x_when_power_hit(keyboard_x_direction: int,
                                            keyboard_y_direction: int,
                                            ball: Ball) -> int:
    """Landing x if the ball were power hit right now with the given keys. Pure."""
    if ball.x < GROUND_HALF_WIDTH:
        x_velocity = (abs(keyboard_x_direction) + 1) * POWER_HIT_X_SPEED_UNIT
    else:
        x_velocity = -(abs(keyboard_x_direction) + 1) * POWER_HIT_X_SPEED_UNIT
    y_velocity = abs(ball.y_velocity) * keyboard_y_direction * 2
    return _landing_point_x(ball.x, ball.y, x_velocity, y_velocity,
                            POWER_HIT_PREDICTION_NET_RULE)


def calculate_expected_landing_point_x(ball: Ball) -> None:
    ball.expected_landing_point_x = expected_landing_point_x(ball)


def _truncating_half(value: int) -> int:
    # int() drops the fraction toward zero; -3 // 2 would floor to -2.
    return int(value / 2)


class PhysicsEngine:
    """Per-frame resolvers. Mutates the ball and players it is handed.

    ``events`` collects what happened during the current frame (jump, dive,
    power hit, ground touch, ...) for an audio or effects layer; the owner
    clears it at the start of each frame.
    """

    def __init__(self):
        self.events: list = []

    # ──────────────────────────────────────────
    # Ball vs world
    # ──────────────────────────────────────────
    def process_collision_between_ball_and_world(self, ball: Ball) -> bool:
        """Advance the ball one frame against walls, net and ground.

        Returns:
            True if the ball touched the ground this frame. The ball is then
            clamped to the ground line and does not move horizontally.
        """
        future_fine_rotation = ball.fine_rotation + _truncating_half(ball.x_velocity)
        # Exactly 50 passes both checks and yields rotation 5: the hyper ball.
        if future_fine_rotation < 0:
            future_fine_rotation += FINE_ROTATION_PERIOD
        elif future_fine_rotation > FINE_ROTATION_PERIOD:
            future_fine_rotation -= FINE_ROTATION_PERIOD
        ball.fine_rotation = future_fine_rotation
        ball.rotation = ball.fine_rotation // 10

        ball.x_velocity, ball.y_velocity = _reflect_off_world(
            ball.x, ball.y, ball.x_velocity, ball.y_velocity, LIVE_NET_RULE)

        future_y = ball.y + ball.y_velocity
        if future_y > BALL_TOUCHING_GROUND_Y:
            ball.y_velocity = -ball.y_velocity
            ball.punch_effect_x = ball.x
            ball.y = BALL_TOUCHING_GROUND_Y
            ball.punch_effect_radius = PUNCH_EFFECT_RADIUS
            ball.punch_effect_y = GROUND_PUNCH_EFFECT_Y
            self.events.append({"type": "ball_ground", "x": ball.x})
            return True

        ball.y = future_y
        ball.x = ball.x + ball.x_velocity
        ball.y_velocity += GRAVITY

        ball.previous_previous_x = ball.previous_x
        ball.previous_previous_y = ball.previous_y
        ball.previous_x = ball.x
        ball.previous_y = ball.y
        return False

    # ──────────────────────────────────────────
    # Player movement
    # ──────────────────────────────────────────
    def process_player_movement(self, player: Player, keyboard: PlayerInput) -> None:
        """Move one player one frame according to its (already decided) input."""
        if player.state == PlayerState.LYING_DOWN:
            player.lying_down_frames_left -= 1
            if player.lying_down_frames_left < -1:
                player.state = PlayerState.NORMAL
            return

        # Horizontal
        if player.state in _RUNNING_STATES:
            velocity_x = keyboard.x_direction * PLAYER_RUN_SPEED
        elif player.state == PlayerState.DIVING:
            velocity_x = player.diving_direction * PLAYER_DIVE_SPEED
        elif player.state in _END_OF_ROUND_STATES:
            velocity_x = 0
        else:
            raise ValueError(f"unknown player state: {player.state!r}")

        future_x = player.x + velocity_x
        player.x = future_x
        if not player.is_player2:
            if future_x < PLAYER_HALF_LENGTH:
                player.x = PLAYER_HALF_LENGTH
            elif future_x > GROUND_HALF_WIDTH - PLAYER_HALF_LENGTH:
                player.x = GROUND_HALF_WIDTH - PLAYER_HALF_LENGTH
        else:
            if future_x < GROUND_HALF_WIDTH + PLAYER_HALF_LENGTH:
                player.x = GROUND_HALF_WIDTH + PLAYER_HALF_LENGTH
            elif future_x > GROUND_WIDTH - PLAYER_HALF_LENGTH:
                player.x = GROUND_WIDTH - PLAYER_HALF_LENGTH

        # Jump
        if (player.state in _RUNNING_STATES
                and keyboard.y_direction == -1
                and player.y == PLAYER_TOUCHING_GROUND_Y):
            player.y_velocity = PLAYER_JUMP_VELOCITY
            player.state = PlayerState.JUMPING
            player.frame_number = 0
            self.events.append({"type": "jump", "player": player.side})

        # Gravity and landing
        future_y = player.y + player.y_velocity
        player.y = future_y
        if future_y < PLAYER_TOUCHING_GROUND_Y:
            player.y_velocity += GRAVITY
        elif future_y > PLAYER_TOUCHING_GROUND_Y:
            player.y_velocity = 0
            player.y = PLAYER_TOUCHING_GROUND_Y
            player.frame_number = 0
            if player.state == PlayerState.DIVING:
                player.state = PlayerState.LYING_DOWN
                player.frame_number = 0
                player.lying_down_frames_left = LYING_DOWN_FRAMES
            else:
                player.state = PlayerState.NORMAL

        if keyboard.power_hit == 1:
            if player.state == PlayerState.JUMPING:
                player.delay_before_next_frame = POWER_HIT_SWING_DELAY
                player.frame_number = 0
                player.state = PlayerState.JUMP_POWER_HIT
                self.events.append({"type": "power_swing", "player": player.side})
            elif player.state == PlayerState.NORMAL and keyboard.x_direction != 0:
                player.state = PlayerState.DIVING
                player.frame_number = 0
                player.diving_direction = keyboard.x_direction
                player.y_velocity = PLAYER_DIVE_Y_VELOCITY
                self.events.append({"type": "dive", "player": player.side})

        self._advance_animation(player)

        if player.round_ended:
            if player.state == PlayerState.NORMAL:
                if player.is_winner:
                    player.state = PlayerState.WON
                    self.events.append({"type": "win", "player": player.side})
                else:
                    player.state = PlayerState.LOST
                player.delay_before_next_frame = 0
                player.frame_number = 0
            self._advance_end_of_round_animation(player)

    @staticmethod
    def _advance_animation(player: Player) -> None:
        if player.state == PlayerState.JUMPING:
            player.frame_number = (player.frame_number + 1) % 3
        elif player.state == PlayerState.JUMP_POWER_HIT:
            if player.delay_before_next_frame < 1:
                player.frame_number += 1
                if player.frame_number > 4:
                    player.frame_number = 0
                    player.state = PlayerState.JUMPING
            else:
                player.delay_before_next_frame -= 1
        elif player.state == PlayerState.NORMAL:
            player.delay_before_next_frame += 1
            if player.delay_before_next_frame > 3:
                player.delay_before_next_frame = 0
                future_frame_number = player.frame_number + player.arm_swing_direction
                if future_frame_number < 0 or future_frame_number > 4:
                    player.arm_swing_direction = -player.arm_swing_direction
                player.frame_number += player.arm_swing_direction

    @staticmethod
    def _advance_end_of_round_animation(player: Player) -> None:
        if player.frame_number < 4:
            player.delay_before_next_frame += 1
            if player.delay_before_next_frame > 4:
                player.delay_before_next_frame = 0
                player.frame_number += 1

    # ──────────────────────────────────────────
    # Ball vs player
    # ──────────────────────────────────────────
    @staticmethod
    def is_collision_between_ball_and_player(ball: Ball, player_x: int, player_y: int) -> bool:
        return (abs(ball.x - player_x) < BALL_PLAYER_COLLISION_RANGE
                and abs(ball.y - player_y) < BALL_PLAYER_COLLISION_RANGE)

    def process_collision_between_ball_and_player(self, ball: Ball, player_x: int,
                                                  keyboard: PlayerInput,
                                                  player_state: PlayerState,
                                                  rng: RandomSource) -> None:
        """Set the ball's velocity after a hit. Position is left to the world resolver.

        The farther the ball is from the player's center, the faster it
        leaves sideways. A ball exactly above the center keeps its old
        x-velocity; if that is 0 it gets a random kick of -1, 0 or 1.
        """
        if ball.x < player_x:
            ball.x_velocity = -(abs(ball.x - player_x) // 3)
        elif ball.x > player_x:
            ball.x_velocity = abs(ball.x - player_x) // 3

        if ball.x_velocity == 0:
            ball.x_velocity = (rng.next_int() % 3) - 1

        ball_abs_y_velocity = abs(ball.y_velocity)
        ball.y_velocity = -ball_abs_y_velocity
        if ball_abs_y_velocity < MIN_BOUNCE_Y_VELOCITY:
            ball.y_velocity = -MIN_BOUNCE_Y_VELOCITY

        if player_state == PlayerState.JUMP_POWER_HIT:
            if ball.x < GROUND_HALF_WIDTH:
                ball.x_velocity = (abs(keyboard.x_direction) + 1) * POWER_HIT_X_SPEED_UNIT
            else:
                ball.x_velocity = -(abs(keyboard.x_direction) + 1) * POWER_HIT_X_SPEED_UNIT
            ball.punch_effect_x = ball.x
            ball.punch_effect_y = ball.y
            ball.y_velocity = abs(ball.y_velocity) * keyboard.y_direction * 2
            ball.punch_effect_radius = PUNCH_EFFECT_RADIUS
            ball.is_power_hit = True
            self.events.append({"type": "power_hit", "x": ball.x, "y": ball.y})
        else:
            ball.is_power_hit = False

        calculate_expected_landing_point_x(ball)

    def resolve_ball_player_contact(self, ball: Ball, player: Player,
                                    keyboard: PlayerInput, rng: RandomSource) -> Optional[bool]:
        """Rising-edge collision handling for one player.

        Returns:
            True if a new hit was resolved, False if the ball is out of
            reach, None while the ball is still overlapping a previous hit.
        """
        if self.is_collision_between_ball_and_player(ball, player.x, player.y):
            if player.is_collision_with_ball_happened:
                return None
            self.process_collision_between_ball_and_player(
                ball, player.x, keyboard, player.state, rng)
            player.is_collision_with_ball_happened = True
            return True
        player.is_collision_with_ball_happened = False
        return False
