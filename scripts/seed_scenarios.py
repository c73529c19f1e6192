"""Insert a starter set of scenarios into an empty database.

Usage: python scripts/seed_scenarios.py
"""
import sys
import os

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from portal import create_app
from portal.models.scenario import Scenario
from portal.services.scenarios import create_scenario

STARTER = [
    ("Introduce yourself",
     "Tell us about yourself, your background and why you are interested in this role.", "audio"),
    ("Handling an upset customer",
     "A customer calls because their order arrived damaged and they are angry. Respond to them as you would on the phone.", "audio"),
    ("Written follow-up",
     "Write a short e-mail to the same customer confirming how the issue will be resolved.", "text"),
]


def main():
    app = create_app()
    with app.app_context():
        if Scenario.query.count():
            app.logger.info('Scenarios already present, nothing to do')
            return
        for title, description, response_type in STARTER:
            s = create_scenario(title, description, response_type)
            app.logger.info('Created scenario %s: %s', s.id, s.title)


if __name__ == '__main__':
    main()
