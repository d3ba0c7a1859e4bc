"""Hospital appointment booking voice agent."""
