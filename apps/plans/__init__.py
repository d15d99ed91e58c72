"""Plans app package.

Multi-day packaged tours: the ``Plan`` itinerary with its ordered
``PlanDay`` entries, and ``PlanEnrollment``, the participant lifecycle
that books places on a plan independently of service reservations.
"""
