"""Phone-line IVR: Twilio webhooks, call-flow graph and background reminders."""
