"""
vizchat: a terminal chat client that renders structured visualizations
(charts, molecules, sequences, simulations, diagrams, star maps, drug cards)
inline while the model's answer streams in.
"""

__version__ = "0.1.0"
