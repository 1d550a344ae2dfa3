"""Mental Math Trainer: a timed arithmetic memory drill."""
