"""Left-to-right breaker on the classic tuning, aimed a touch left"""

SCRIPT = {
    "preset": "classic",
    "green": {
        "hole_distance_feet": 12.0,
        "green_speed":        11.0,
        "slope_up_down":       0.0,
        "slope_left_right":    2.0,    # breaks right
    },
    "putt": {
        "power_distance_feet": 12.0,
        "power_percent":       70.0,
        "aim_angle_degrees":   -3.0,   # start it left of the cup
    },
}
