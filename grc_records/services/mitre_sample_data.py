"""Trusted ATT&CK techniques served when the live feed cannot be used."""

from __future__ import annotations

SAMPLE_TECHNIQUES: tuple[dict, ...] = (
    {
        "id": "T1548",
        "name": "Abuse Elevation Control Mechanism",
        "description": (
            "Adversaries may circumvent mechanisms designed to control elevate privileges "
            "to gain higher-level permissions."
        ),
        "tactic": "privilege-escalation",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1134",
        "name": "Access Token Manipulation",
        "description": (
            "Adversaries may modify access tokens to operate under a different user or "
            "system security context to perform actions and bypass access controls."
        ),
        "tactic": "privilege-escalation",
        "platforms": ["Windows"],
    },
    {
        "id": "T1531",
        "name": "Account Access Removal",
        "description": (
            "Adversaries may interrupt availability of system and network resources by "
            "inhibiting access to accounts utilized by legitimate users."
        ),
        "tactic": "impact",
        "platforms": ["Windows", "macOS", "Linux", "Office Suite", "SaaS", "IaaS"],
    },
    {
        "id": "T1078",
        "name": "Valid Accounts",
        "description": (
            "Adversaries may obtain and abuse credentials of existing accounts as a means "
            "of gaining Initial Access, Persistence, Privilege Escalation, or Defense Evasion."
        ),
        "tactic": "initial-access",
        "platforms": ["Windows", "macOS", "Linux", "Office Suite", "SaaS", "IaaS", "Network Devices"],
    },
    {
        "id": "T1055",
        "name": "Process Injection",
        "description": (
            "Adversaries may inject code into processes in order to evade process-based "
            "defenses as well as possibly elevate privileges."
        ),
        "tactic": "defense-evasion",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1053",
        "name": "Scheduled Task/Job",
        "description": (
            "Adversaries may abuse task scheduling functionality to facilitate initial or "
            "recurring execution of malicious code."
        ),
        "tactic": "execution",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1083",
        "name": "File and Directory Discovery",
        "description": (
            "Adversaries may enumerate files and directories or may search in specific "
            "locations of a host or network share for certain information within a file system."
        ),
        "tactic": "discovery",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1562",
        "name": "Impair Defenses",
        "description": (
            "Adversaries may maliciously modify components of a victim environment in order "
            "to hinder or disable defensive mechanisms."
        ),
        "tactic": "defense-evasion",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1071",
        "name": "Application Layer Protocol",
        "description": (
            "Adversaries may communicate using application layer protocols to avoid "
            "detection/network filtering by blending in with existing traffic."
        ),
        "tactic": "command-and-control",
        "platforms": ["Windows", "macOS", "Linux", "Network Devices"],
    },
    {
        "id": "T1041",
        "name": "Exfiltration Over C2 Channel",
        "description": (
            "Adversaries may steal data by exfiltrating it over an existing Command and "
            "Control channel."
        ),
        "tactic": "exfiltration",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1490",
        "name": "Inhibit System Recovery",
        "description": (
            "Adversaries may delete or remove built-in data and turn off services designed "
            "to aid in the recovery of a corrupted system to prevent recovery."
        ),
        "tactic": "impact",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1497",
        "name": "Virtualization/Sandbox Evasion",
        "description": (
            "Adversaries may employ various means to detect and avoid virtualization and "
            "analysis environments."
        ),
        "tactic": "defense-evasion",
        "platforms": ["Windows", "macOS", "Linux"],
    },
    {
        "id": "T1600",
        "name": "Weaken Encryption",
        "description": (
            "Adversaries may compromise a network device's encryption capability in order "
            "to bypass encryption that would otherwise protect data communications."
        ),
        "tactic": "defense-evasion",
        "platforms": ["Network Devices"],
    },
    {
        "id": "T1102",
        "name": "Web Service",
        "description": (
            "Adversaries may use an existing, legitimate external Web service as a means "
            "for relaying data to/from a compromised system."
        ),
        "tactic": "command-and-control",
        "platforms": ["Windows", "macOS", "Linux"],
    },
)

TACTICS: tuple[tuple[str, str], ...] = (
    ("TA0001", "Initial Access"),
    ("TA0002", "Execution"),
    ("TA0003", "Persistence"),
    ("TA0004", "Privilege Escalation"),
    ("TA0005", "Defense Evasion"),
    ("TA0006", "Credential Access"),
    ("TA0007", "Discovery"),
    ("TA0008", "Lateral Movement"),
    ("TA0009", "Collection"),
    ("TA0010", "Exfiltration"),
    ("TA0011", "Command and Control"),
    ("TA0040", "Impact"),
)

PLATFORMS: tuple[str, ...] = (
    "Windows",
    "macOS",
    "Linux",
    "PRE",
    "Office Suite",
    "Identity Provider",
    "SaaS",
    "IaaS",
    "Network Devices",
    "Containers",
    "ESXi",
)
