"""
Seed script: loads a starter answer library for one organization.
Run: cd backend && python ../scripts/seed_answer_library.py <organization_slug>
"""
import asyncio
import os
import sys
from pathlib import Path

# Ensure backend is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))
os.chdir(str(Path(__file__).resolve().parent.parent / "backend"))

from sqlalchemy import func, select  # noqa: E402

from compliancehub.database import async_session  # noqa: E402
from compliancehub.models.answer_library import AnswerLibraryEntry  # noqa: E402
from compliancehub.models.organization import Organization  # noqa: E402


ENTRIES = [
    {"category": "ACCESS_CONTROL", "subcategory": "User Authentication", "confidence_score": 85,
     "key_phrases": ["authentication", "login", "password", "multi-factor", "mfa"],
     "standard_answer": "Multi-factor authentication is enforced for every user account. Users combine a password with a second factor such as an authenticator app or hardware key, and all authentication attempts are logged and monitored for suspicious activity."},
    {"category": "ACCESS_CONTROL", "subcategory": "Access Management", "confidence_score": 80,
     "key_phrases": ["access control", "permissions", "authorization", "role-based", "rbac"],
     "standard_answer": "Access is granted on the principle of least privilege through role-based permissions managed in a central identity and access management system. Access rights are reviewed quarterly and adjusted when responsibilities change."},
    {"category": "ACCESS_CONTROL", "subcategory": "Account Management", "confidence_score": 75,
     "key_phrases": ["account management", "user provisioning", "onboarding", "offboarding"],
     "standard_answer": "User accounts follow a documented lifecycle. Accounts are provisioned on approved requests, access is revoked on the last working day, and every change is recorded and approved by the system owner."},
    {"category": "DATA_PROTECTION", "subcategory": "Encryption", "confidence_score": 90,
     "key_phrases": ["encryption", "data protection", "cryptographic", "at rest", "in transit"],
     "standard_answer": "Sensitive data is encrypted at rest with AES-256 and in transit with TLS 1.2 or higher. Keys are held in a managed key management service with automatic rotation and restricted administrative access."},
    {"category": "DATA_PROTECTION", "subcategory": "Privacy", "confidence_score": 85,
     "key_phrases": ["privacy", "gdpr", "personal data", "data subject", "consent"],
     "standard_answer": "The privacy programme covers GDPR and other applicable regulations through data mapping, privacy impact assessments, consent management and documented procedures for data subject requests."},
    {"category": "INCIDENT_RESPONSE", "subcategory": "Security Incidents", "confidence_score": 85,
     "key_phrases": ["incident response", "security incident", "breach", "response plan", "forensics"],
     "standard_answer": "A documented incident response plan defines how incidents are detected, triaged, contained, eradicated and recovered from. The response team runs tabletop exercises annually and lessons learned feed back into the security programme."},
    {"category": "NETWORK_SECURITY", "subcategory": "Firewall", "confidence_score": 80,
     "key_phrases": ["firewall", "network security", "perimeter", "network segmentation"],
     "standard_answer": "Firewalls protect the network perimeter and separate internal segments. Rule sets are reviewed at least twice a year and all traffic decisions are logged centrally for analysis."},
    {"category": "NETWORK_SECURITY", "subcategory": "Network Monitoring", "confidence_score": 80,
     "key_phrases": ["network monitoring", "intrusion detection", "ids", "ips", "network traffic"],
     "standard_answer": "Network traffic is monitored continuously by intrusion detection and prevention systems. Alerts are raised automatically and investigated by the security operations team."},
    {"category": "PHYSICAL_SECURITY", "subcategory": "Facility Access", "confidence_score": 75,
     "key_phrases": ["physical security", "facility access", "badge", "visitor management"],
     "standard_answer": "Offices use badge-based access control, visitor registration and CCTV. Access to sensitive areas is limited to authorised staff and every access event is logged."},
    {"category": "BUSINESS_CONTINUITY", "subcategory": "Backup", "confidence_score": 85,
     "key_phrases": ["backup", "data backup", "recovery", "business continuity", "disaster recovery"],
     "standard_answer": "Critical systems are backed up daily to geographically separate, encrypted storage. Restores are tested quarterly to confirm that data can be recovered within the agreed objectives."},
    {"category": "VENDOR_MANAGEMENT", "subcategory": "Third Party Risk", "confidence_score": 80,
     "key_phrases": ["vendor management", "third party", "supplier", "risk assessment", "due diligence"],
     "standard_answer": "Vendors are risk-assessed before onboarding and reviewed periodically afterwards. Contracts include security requirements, audit rights and breach notification obligations."},
    {"category": "COMPLIANCE_FRAMEWORK", "subcategory": "ISO 27001", "confidence_score": 85,
     "key_phrases": ["iso 27001", "information security", "management system", "isms"],
     "standard_answer": "The information security management system is aligned with ISO 27001, including policies, risk assessment, internal audits and management review. External certification audits are performed annually."},
    {"category": "COMPLIANCE_FRAMEWORK", "subcategory": "SOC 2", "confidence_score": 85,
     "key_phrases": ["soc 2", "service organization", "trust services", "audit"],
     "standard_answer": "An independent auditor issues a SOC 2 Type II report every year covering the security, availability and confidentiality criteria. The current report is available to customers under NDA."},
    {"category": "GENERAL_SECURITY", "subcategory": "Security Awareness", "confidence_score": 80,
     "key_phrases": ["security awareness", "training", "education", "phishing", "social engineering"],
     "standard_answer": "All staff complete security awareness training on hire and annually, covering phishing, social engineering, password hygiene and data handling. Simulated phishing campaigns measure awareness throughout the year."},
]


async def seed(slug: str) -> int:
    async with async_session() as s:
        org = (await s.execute(select(Organization).where(Organization.slug == slug))).scalar_one_or_none()
        if not org:
            print(f"Organization '{slug}' not found")
            return 1

        existing = (await s.execute(
            select(func.count()).select_from(AnswerLibraryEntry)
            .where(AnswerLibraryEntry.organization_id == org.id)
        )).scalar() or 0
        if existing:
            print(f"Organization '{slug}' already has {existing} library entries, skipping")
            return 0

        for data in ENTRIES:
            s.add(AnswerLibraryEntry(organization_id=org.id, evidence_references=[], **data))
        await s.commit()
        print(f"Seeded {len(ENTRIES)} answer library entries for '{org.name}' (id={org.id})")
        return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python ../scripts/seed_answer_library.py <organization_slug>")
        sys.exit(2)
    sys.exit(asyncio.run(seed(sys.argv[1])))
