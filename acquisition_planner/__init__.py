"""
Subscriber acquisition planner - cohort, plan and campaign calculators
"""
__version__ = "0.1.0"
