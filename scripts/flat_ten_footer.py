"""Flat 10 ft putt, full stroke straight at the cup"""

SCRIPT = {
    "preset": "canonical",
    "green": {
        "hole_distance_feet": 10.0,
        "green_speed":        10.0,
        "slope_up_down":       0.0,
        "slope_left_right":    0.0,
    },
    "putt": {
        "power_distance_feet": 10.0,
        "power_percent":      100.0,
        "aim_angle_degrees":    0.0,
    },
}
