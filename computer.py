"""
Computer player — decides which keys a computer-controlled pikachu presses.

Called once per frame per computer player, before that player moves. Reads
the ball (including the landing point cached for this frame), the player
itself and the opponent; writes nothing but ``standby_preference``.

Boldness (0-4, redrawn every round) shifts every threshold: a bolder
computer waits longer before chasing, jumps at higher balls and dives less.
"""

from typing import Optional, Tuple

from physics import (
    Ball, Player, PlayerInput, PlayerState, GROUND_HALF_WIDTH, GROUND_WIDTH,
    expected_landing_point_x_when_power_hit,
)
from rand import RandomSource

# (x_direction, y_direction) candidates, tried in order until one lands well.
# The coin flip in decide_power_hit_direction picks which list is used.
POWER_HIT_ORDER_UP_FIRST = [(1, -1), (1, 0), (1, 1), (0, -1), (0, 0), (0, 1)]
POWER_HIT_ORDER_DOWN_FIRST = [(1, 1), (1, 0), (1, -1), (0, 1), (0, 0), (0, -1)]


def _is_outside_own_court(player: Player, landing_x: int) -> bool:
    side = int(player.is_player2)
    return (landing_x <= side * GROUND_HALF_WIDTH
            or landing_x >= side * GROUND_WIDTH + GROUND_HALF_WIDTH)


def decide_power_hit_direction(player: Player, ball: Ball, the_other_player: Player,
                               rng: RandomSource) -> Optional[Tuple[int, int]]:
    """Pick keys for a power hit that lands away from the opponent.

    Returns:
        The first (x_direction, y_direction) whose predicted landing point is
        off the player's own court and more than 64 px from the opponent, or
        None if no candidate qualifies.
    """
    if rng.next_int() % 2 == 0:
        candidates = POWER_HIT_ORDER_UP_FIRST
    else:
        candidates = POWER_HIT_ORDER_DOWN_FIRST

    for x_direction, y_direction in candidates:
        landing_x = expected_landing_point_x_when_power_hit(x_direction, y_direction, ball)
        if (_is_outside_own_court(player, landing_x)
                and abs(landing_x - the_other_player.x) > 64):
            return x_direction, y_direction
    return None


def decide_keyboard_press(player: Player, ball: Ball, the_other_player: Player,
                          rng: RandomSource) -> PlayerInput:
    """Return this frame's input for a computer-controlled player."""
    x_direction = 0
    y_direction = 0
    power_hit = 0

    side = int(player.is_player2)
    left_boundary = side * GROUND_HALF_WIDTH
    right_boundary = (side + 1) * GROUND_HALF_WIDTH
    distance_to_ball = abs(ball.x - player.x)

    # Stand by mid-court while a slow ball hangs around on the other side.
    target_x = ball.expected_landing_point_x
    if distance_to_ball > 100 and abs(ball.x_velocity) < player.boldness + 5:
        if (_is_outside_own_court(player, ball.expected_landing_point_x)
                and player.standby_preference == 0):
            target_x = left_boundary + GROUND_HALF_WIDTH // 2

    if abs(target_x - player.x) > player.boldness + 8:
        x_direction = 1 if player.x < target_x else -1
    elif rng.next_int() % 20 == 0:
        player.standby_preference = rng.next_int() % 2

    if player.state == PlayerState.NORMAL:
        if (abs(ball.x_velocity) < player.boldness + 3
                and distance_to_ball < 32
                and -36 < ball.y < 10 * player.boldness + 84
                and ball.y_velocity > 0):
            y_direction = -1

        if (left_boundary < ball.expected_landing_point_x < right_boundary
                and distance_to_ball > player.boldness * 5 + 64
                and left_boundary < ball.x < right_boundary
                and ball.y > 174):
            # dive
            power_hit = 1
            x_direction = 1 if player.x < ball.x else -1

    elif player.state in (PlayerState.JUMPING, PlayerState.JUMP_POWER_HIT):
        if distance_to_ball > 8:
            x_direction = 1 if player.x < ball.x else -1

        if distance_to_ball < 48 and abs(ball.y - player.y) < 48:
            aim = decide_power_hit_direction(player, ball, the_other_player, rng)
            if aim is not None:
                x_direction, y_direction = aim
                power_hit = 1
                if abs(the_other_player.x - player.x) < 80 and y_direction != -1:
                    y_direction = -1

    return PlayerInput(x_direction=x_direction, y_direction=y_direction, power_hit=power_hit)
