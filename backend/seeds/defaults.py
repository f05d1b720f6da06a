"""Seed definitions for the HR catalog, academy modules, units and incentive configs.
(Data only; ``scripts/seed.py`` applies it idempotently.)
"""

# Hiring criteria; every active one must be confirmed before the questions step.
CRITERIA = [
    'Stabilization licence checked',
    'Visa level checked',
    'No criminal offences (7 days)',
    'Appropriate appearance',
    'No faction ban',
    'No open invoices',
    'Searched',
    'Blacklist checked',
    'Service handbook handed out',
    'Entrance test',
    'Roleplay situation presented & small talk',
]

# Entrance questions; the answered share must reach QUESTION_PASS_THRESHOLD.
QUESTIONS = [
    'What do you do before going on duty?',
    'What is the crisis hotline number?',
    'Who is the chief of police?',
    'What are the speed limits inside and outside the city?',
    'What is the tackle command?',
    'Who has to follow an order and why? (chain of command)',
    'Who approves leave and days off?',
    'Name three patrol vehicles.',
    'Which faction radio frequency do we use?',
    'How do you behave at an accident scene?',
    'What is the difference between a reminder and a warning, and how long do they stay on record?',
]

ONBOARDING = [
    'Platform account linked',
    'Uniform handed out',
    'Radio handed out',
    'Service vehicle briefing',
    'Introduced to the team lead',
]

ACADEMY_MODULES = {
    'JUNIOR_OFFICER': [
        ('Basic training', 'Duty procedures, radio etiquette and chain of command'),
        ('Traffic stops', 'Stopping, approaching and releasing vehicles'),
        ('Arrest procedure', 'Rights, searching and transport of suspects'),
        ('Report writing', 'Incident and arrest reports'),
        ('Driving course', 'Pursuit and emergency driving'),
        ('Firearms qualification', 'Handling and use-of-force rules'),
    ],
    'OFFICER': [
        ('Scene management', 'Securing and documenting incident scenes'),
        ('Negotiation basics', 'Hostage and robbery negotiation'),
        ('Evidence handling', 'Collecting and storing evidence'),
        ('Field training', 'Supervised patrol with a senior officer'),
    ],
}

# (name, sort_order, [(label, external_role_id, is_base), ...])
UNITS = [
    ('Internal Affairs', 0, [('Member', '100000000000000001', True), ('Lead', '100000000000000002', False)]),
    ('Human Resources', 1, [('Member', '100000000000000011', True), ('Lead', '100000000000000012', False)]),
    ('Police Academy', 2, [('Instructor', '100000000000000021', True), ('Lead', '100000000000000022', False)]),
    ('Detectives', 3, [('Detective', '100000000000000031', True), ('Lead', '100000000000000032', False)]),
    ('Special Weapons & Tactics', 4, [('Operator', '100000000000000041', True), ('Lead', '100000000000000042', False)]),
    ('State & Highway Patrol', 5, [('Trooper', '100000000000000051', True)]),
]

# activity_type -> (display name, category); amounts start at 0 (no payment) until finance sets them.
BONUS_CONFIGS = {
    'APPLICATION_COMPLETED': ('Application completed', 'HR'),
    'APPLICATION_ONBOARDING': ('Onboarding completed', 'HR'),
    'APPLICATION_REJECTED': ('Application rejected', 'HR'),
    'TRAINING_CONDUCTED': ('Training conducted', 'ACADEMY'),
    'TRAINING_PARTICIPATED': ('Training participated', 'ACADEMY'),
    'EXAM_CONDUCTED': ('Exam conducted', 'ACADEMY'),
    'RETRAINING_COMPLETED': ('Retraining completed', 'ACADEMY'),
    'ACADEMY_MODULE_COMPLETED': ('Academy module completed', 'ACADEMY'),
    'INVESTIGATION_OPENED': ('Investigation opened', 'IA'),
    'INVESTIGATION_CLOSED': ('Investigation closed', 'IA'),
    'UNIT_REVIEW_COMPLETED': ('Unit review completed', 'IA'),
    'CASE_OPENED': ('Case opened', 'DETECTIVE'),
    'CASE_CLOSED': ('Case closed', 'DETECTIVE'),
    'ROBBERY_LEADER': ('Robbery lead', 'GENERAL'),
    'ROBBERY_NEGOTIATOR': ('Robbery negotiator', 'GENERAL'),
    'EVIDENCE_STORED': ('Evidence stored', 'GENERAL'),
    'SANCTION_ISSUED': ('Sanction issued', 'GENERAL'),
}
