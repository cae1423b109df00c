pytest_plugins = [
    "tests.fixtures.push_fixtures",
    "tests.fixtures.notification_fixtures",
    "tests.fixtures.conversation_fixtures",
]
