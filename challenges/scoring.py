"""
Dynamic scoring and flag helpers.
"""
import re

FLAG_FORMAT = re.compile(r'^ctnft\{[^}]+\}$', re.IGNORECASE)


def calculate_points(initial_points, min_points, decay_factor, current_solves):
    """
    Points for the next solve: max(min_points, initial_points - decay_factor * current_solves)
    """
    return max(min_points, initial_points - decay_factor * current_solves)


def is_valid_flag_format(flag):
    """Flags look like ctnft{...}"""
    if not flag:
        return False
    return bool(FLAG_FORMAT.match(flag.strip()))


def is_correct_flag(submitted_flag, correct_flag):
    """Exact comparison after trimming surrounding whitespace"""
    if submitted_flag is None or correct_flag is None:
        return False
    return submitted_flag.strip() == correct_flag.strip()
