"""
Scheduling Domain

Patient-facing availability: weekly provider schedules turned into bookable
slots for a payer on a date, minus appointments already booked in IntakeQ,
grouped by clock time so the patient picks a time rather than a provider.

- consolidation.py        # Pure slot grouping / selection
- repository.py           # Bookability and weekly availability queries
- availability_service.py # Merged availability workflow
- router.py               # /patient-booking endpoints
"""
