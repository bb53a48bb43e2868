"""Uphill 20 ft lag putt: the slope takes pace off, so hit it firmer"""

SCRIPT = {
    "preset": "calibrated",
    "green": {
        "hole_distance_feet": 20.0,
        "green_speed":         9.0,
        "slope_up_down":       6.0,    # uphill
        "slope_left_right":    0.0,
    },
    "putt": {
        "power_distance_feet": 20.0,
        "power_percent":       95.0,
        "aim_angle_degrees":    0.0,
    },
}
