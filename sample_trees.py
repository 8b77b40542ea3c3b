"""
Authored decision trees for Module 4: Escalation to FIR and CCTNS.
"""

from typing import Callable, Dict, Optional

from schemas import DecisionTree

COMPLAINT_DELAY_TREE_ID = "complaint-delay-escalation"
MODULE4_TREE_ID = "module-4-escalation-fir"


def _consequences(*items):
    return [
        {"type": kind, "description": text, "impact": impact, "delay": 1000 * (i + 1)}
        for i, (kind, text, impact) in enumerate(items)
    ]


def complaint_delay_tree() -> DecisionTree:
    """Two review points of the same delayed complaint, at 7 and at 15 days."""
    return DecisionTree.model_validate({
        "id": COMPLAINT_DELAY_TREE_ID,
        "title": "Complaint Delay Scenario",
        "description": "Decision tree for handling delayed cybercrime complaints",
        "context": "You are a cybercrime officer responsible for reviewing complaints and deciding when to escalate them to FIR and file in CCTNS.",
        "startDecisionId": "decision-1",
        "decisionPoints": [
            {
                "id": "decision-1",
                "title": "Initial Complaint Review",
                "description": "A cybercrime complaint was filed 7 days ago regarding an online financial fraud of ₹25,000. The victim has provided bank transaction details and screenshots of the fraudulent website. No action has been taken yet.",
                "context": "You are reviewing this case for the first time. The complaint was registered in the NCRP system 7 days ago.",
                "scenario": "The victim has called twice to check on the status. Initial verification confirms this appears to be a legitimate complaint with sufficient evidence. What action will you take?",
                "options": [
                    {
                        "id": "option-1-1",
                        "text": "Wait for more information",
                        "description": "Continue gathering evidence and wait for the bank's response before taking further action.",
                        "category": "wait",
                        "points": 10,
                        "feedback": "This is a reasonable decision at this stage. The complaint is only 7 days old, and you should gather more information from the bank before escalating.",
                        "isOptimal": True,
                    },
                    {
                        "id": "option-1-2",
                        "text": "Escalate to FIR immediately",
                        "description": "Convert the complaint to an FIR due to the significant amount involved.",
                        "category": "escalate",
                        "points": -5,
                        "feedback": "This is premature. The complaint is only 7 days old, and standard procedure recommends escalation after 15 days if there is no resolution. Immediate escalation should be reserved for cases with clear evidence of organized crime or very large amounts.",
                    },
                    {
                        "id": "option-1-3",
                        "text": "File in CCTNS",
                        "description": "Enter the case directly into the CCTNS system as a cybercrime case.",
                        "category": "file_fir",
                        "points": -10,
                        "feedback": "This is incorrect. Filing in CCTNS should only happen after an FIR is registered. The complaint is still in the preliminary stage and should be handled through the NCRP system first.",
                    },
                ],
            },
            {
                "id": "decision-2",
                "title": "Follow-up Review (15 Days)",
                "description": "The same cybercrime complaint is now 15 days old. The bank has confirmed the transaction was made to a fraudulent account. The victim has provided additional evidence including chat logs with the fraudster.",
                "context": "The 15-day threshold for complaint resolution has been reached. You have confirmation from the bank about the fraudulent nature of the transaction.",
                "scenario": "The victim is increasingly distressed and has called multiple times for updates. The fraudulent account holder has been identified, but no action has been taken yet. What action will you take now?",
                "options": [
                    {
                        "id": "option-2-1",
                        "text": "Wait for more information",
                        "description": "Continue the investigation at the complaint level to gather more evidence.",
                        "category": "wait",
                        "points": -10,
                        "feedback": "This is not appropriate. The complaint is now 15 days old with clear evidence of fraud and identification of the suspect. According to guidelines, cases should be escalated to FIR if not resolved within 15 days.",
                    },
                    {
                        "id": "option-2-2",
                        "text": "Escalate to FIR",
                        "description": "Convert the complaint to an FIR as the 15-day threshold has been reached and there is clear evidence of fraud.",
                        "category": "escalate",
                        "points": 15,
                        "feedback": "This is the correct decision. The complaint has reached the 15-day threshold, there is clear evidence of fraud, and the suspect has been identified. Escalation to FIR is appropriate at this stage.",
                        "isOptimal": True,
                    },
                    {
                        "id": "option-2-3",
                        "text": "File in CCTNS without FIR",
                        "description": "Enter the case directly into CCTNS to expedite the process.",
                        "category": "file_fir",
                        "points": -5,
                        "feedback": "This is procedurally incorrect. While the case should be escalated, you must first register an FIR before filing in CCTNS. Skipping the FIR step violates proper procedure.",
                    },
                ],
            },
        ],
    })


MODULE4_ESCALATION_TREE = {
    "id": MODULE4_TREE_ID,
    "title": "Escalation to FIR and CCTNS",
    "description": "Learn when and how to escalate complaints to FIR filing in CCTNS",
    "context": "You are a cybercrime officer handling various complaint scenarios. Your decisions will affect the investigation outcome and victim satisfaction.",
    "startDecisionId": "initial-complaint-delay",
    "minScore": 0,
    "metadata": {
        "module": 4,
        "difficulty": "intermediate",
        "estimatedTime": 15,  # minutes
        "learningObjectives": [
            "Understand when to escalate complaints to FIR",
            "Learn proper CCTNS interface usage",
            "Recognize appropriate legal sections for cybercrimes",
            "Understand investigation priority setting",
        ],
    },
    "decisionPoints": [
        {
            "id": "initial-complaint-delay",
            "title": "Complaint Delay Scenario",
            "description": "A victim reports a financial fraud case",
            "context": "A victim approaches you with a complaint about unauthorized transactions from their bank account. The incident occurred 3 days ago.",
            "scenario": "Mrs. Sharma reports that ₹50,000 was transferred from her savings account to an unknown account 3 days ago. She noticed it today when checking her bank statement. She has all the transaction details and wants immediate action. The bank has not been contacted yet.",
            "timeLimit": 120,
            "options": [
                {
                    "id": "escalate-immediately",
                    "text": "Escalate to FIR immediately",
                    "description": "File an FIR right away given the significant amount involved",
                    "points": 15,
                    "feedback": "Good decision! For amounts above ₹20,000, immediate FIR filing ensures proper investigation channels are activated.",
                    "consequences": _consequences(
                        ("positive", "Investigation begins immediately with proper legal backing", "high"),
                        ("positive", "Bank cooperation is secured through official channels", "medium"),
                    ),
                    "nextDecisionId": "cctns-interface-walkthrough",
                    "isOptimal": True,
                    "category": "escalate",
                },
                {
                    "id": "wait-for-more-info",
                    "text": "Wait and gather more information",
                    "description": "Ask the victim to collect more details before proceeding",
                    "points": 5,
                    "feedback": "While gathering information is important, the 72-hour window for transaction reversal is critical. Time is of the essence.",
                    "consequences": _consequences(
                        ("negative", "Valuable time lost in the critical 72-hour window", "high"),
                        ("neutral", "More information gathered, but investigation delayed", "medium"),
                    ),
                    "nextDecisionId": "delayed-action-consequences",
                    "category": "wait",
                },
                {
                    "id": "register-ncrp-only",
                    "text": "Register on NCRP and monitor",
                    "description": "Register the complaint on NCRP portal and wait for developments",
                    "points": 8,
                    "feedback": "NCRP registration is good for tracking, but given the amount and timeline, FIR filing would be more appropriate.",
                    "consequences": _consequences(
                        ("neutral", "Complaint is officially recorded in the system", "medium"),
                        ("negative", "Limited investigation powers without FIR", "medium"),
                    ),
                    "nextDecisionId": "ncrp-limitations",
                    "category": "file_fir",
                },
            ],
        },
        {
            "id": "cctns-interface-walkthrough",
            "title": "CCTNS FIR Filing Process",
            "description": "Navigate the CCTNS interface for FIR filing",
            "context": "You have decided to file an FIR. Now you need to properly enter the case details in CCTNS.",
            "scenario": "You are now at the CCTNS terminal. The victim is waiting while you prepare to file the FIR. You need to select the appropriate sections and categories for this cybercrime case.",
            "timeLimit": 180,
            "options": [
                {
                    "id": "section-420-66c",
                    "text": "File under IPC 420 and IT Act 66C",
                    "description": "Cheating and identity theft sections",
                    "points": 20,
                    "feedback": "Excellent! IPC 420 covers cheating and IT Act 66C covers identity theft and fraud. This is the correct legal framework.",
                    "consequences": _consequences(
                        ("positive", "Proper legal sections ensure comprehensive investigation", "high"),
                        ("positive", "Court proceedings will have solid legal foundation", "high"),
                    ),
                    "nextDecisionId": "investigation-priority",
                    "isOptimal": True,
                    "category": "file_fir",
                },
                {
                    "id": "section-379-only",
                    "text": "File under IPC 379 (Theft) only",
                    "description": "Simple theft case filing",
                    "points": 5,
                    "feedback": "IPC 379 is insufficient for cybercrime cases. You need IT Act sections for proper jurisdiction and investigation.",
                    "consequences": _consequences(
                        ("negative", "Limited investigation scope due to incorrect sections", "high"),
                        ("negative", "May need to amend FIR later, causing delays", "medium"),
                    ),
                    "nextDecisionId": "section-amendment-needed",
                    "category": "file_fir",
                },
                {
                    "id": "it-act-only",
                    "text": "File under IT Act 66D only",
                    "description": "Focus only on IT Act provisions",
                    "points": 10,
                    "feedback": "IT Act 66D is relevant, but combining with IPC sections provides better legal coverage for prosecution.",
                    "consequences": _consequences(
                        ("neutral", "Cybercrime aspects covered but traditional fraud elements missed", "medium"),
                        ("neutral", "Investigation will focus primarily on technical aspects", "medium"),
                    ),
                    "nextDecisionId": "investigation-priority",
                    "category": "file_fir",
                },
            ],
        },
        {
            "id": "investigation-priority",
            "title": "Investigation Priority Setting",
            "description": "Set the priority level for this case",
            "context": "The FIR has been filed with appropriate sections. Now you need to set the investigation priority.",
            "scenario": "With the FIR filed, you need to determine the investigation priority. Consider the amount involved (₹50,000), the victim's profile (senior citizen), and the current caseload of your team.",
            "timeLimit": 90,
            "options": [
                {
                    "id": "high-priority",
                    "text": "Set as High Priority",
                    "description": "Immediate investigation with dedicated resources",
                    "points": 15,
                    "feedback": "Correct! Amount above ₹20,000 and senior citizen victim warrant high priority investigation.",
                    "consequences": _consequences(
                        ("positive", "Dedicated investigator assigned within 24 hours", "high"),
                        ("positive", "Better chances of fund recovery within critical window", "high"),
                    ),
                    "isOptimal": True,
                    "category": "escalate",
                },
                {
                    "id": "medium-priority",
                    "text": "Set as Medium Priority",
                    "description": "Standard investigation timeline",
                    "points": 8,
                    "feedback": "Given the amount and victim profile, high priority would be more appropriate for timely resolution.",
                    "consequences": _consequences(
                        ("neutral", "Investigation will proceed with standard timeline", "medium"),
                        ("negative", "May miss critical window for fund recovery", "medium"),
                    ),
                    "category": "wait",
                },
                {
                    "id": "low-priority",
                    "text": "Set as Low Priority",
                    "description": "Add to regular investigation queue",
                    "points": 2,
                    "feedback": "Low priority is inappropriate for this case. The amount and victim profile require urgent attention.",
                    "consequences": _consequences(
                        ("negative", "Investigation significantly delayed", "high"),
                        ("negative", "Victim satisfaction severely impacted", "high"),
                    ),
                    "category": "wait",
                },
            ],
        },
        {
            "id": "delayed-action-consequences",
            "title": "Consequences of Delay",
            "description": "Handle the consequences of waiting too long",
            "context": "You chose to wait and gather more information. Time has passed and new developments have occurred.",
            "scenario": "Two days have passed since you asked Mrs. Sharma to gather more information. She returns with additional details, but the bank informs that the 72-hour window for transaction reversal has expired. The funds have been withdrawn from the recipient account.",
            "options": [
                {
                    "id": "file-fir-now",
                    "text": "File FIR immediately now",
                    "description": "Proceed with FIR filing despite the delay",
                    "points": 8,
                    "feedback": "Better late than never, but the critical window has been missed. This will make fund recovery much more difficult.",
                    "consequences": _consequences(
                        ("negative", "Critical 72-hour window missed for fund recovery", "high"),
                        ("neutral", "Investigation can still proceed for future prevention", "medium"),
                    ),
                    "nextDecisionId": "cctns-interface-walkthrough",
                    "category": "escalate",
                },
                {
                    "id": "continue-ncrp-only",
                    "text": "Continue with NCRP registration only",
                    "description": "Stick with NCRP portal registration",
                    "points": 3,
                    "feedback": "This approach severely limits investigation capabilities and victim satisfaction.",
                    "consequences": _consequences(
                        ("negative", "Very limited investigation powers", "high"),
                        ("negative", "Victim loses confidence in police response", "high"),
                    ),
                    "category": "wait",
                },
            ],
        },
        {
            "id": "ncrp-limitations",
            "title": "NCRP Registration Limitations",
            "description": "Understanding the limitations of NCRP-only approach",
            "context": "You registered the case on NCRP but did not file an FIR. The victim is asking about next steps.",
            "scenario": "Mrs. Sharma calls after a week asking about the progress. The NCRP registration has been acknowledged, but no concrete investigation steps have been taken. She is frustrated and considering approaching higher authorities.",
            "options": [
                {
                    "id": "escalate-to-fir-now",
                    "text": "Escalate to FIR filing now",
                    "description": "Recognize the limitation and file FIR",
                    "points": 12,
                    "feedback": "Good recovery! Recognizing the need for FIR shows learning from the initial decision.",
                    "consequences": _consequences(
                        ("positive", "Investigation powers significantly enhanced", "high"),
                        ("negative", "Some time already lost, but recovery still possible", "medium"),
                    ),
                    "nextDecisionId": "cctns-interface-walkthrough",
                    "isOptimal": True,
                    "category": "escalate",
                },
                {
                    "id": "explain-ncrp-process",
                    "text": "Explain NCRP process and ask for patience",
                    "description": "Try to manage victim expectations",
                    "points": 4,
                    "feedback": "While communication is important, the victim needs concrete action, not just explanations.",
                    "consequences": _consequences(
                        ("negative", "Victim satisfaction continues to decline", "high"),
                        ("negative", "Case may be escalated to senior officers", "medium"),
                    ),
                    "category": "wait",
                },
            ],
        },
        {
            "id": "section-amendment-needed",
            "title": "Section Amendment Required",
            "description": "Handle the need to amend FIR sections",
            "context": "The FIR was filed with insufficient sections. The investigating officer points out the need for amendments.",
            "scenario": "The investigating officer reviews your FIR and points out that IPC 379 alone is insufficient for this cybercrime case. They recommend adding IT Act sections for proper investigation. This will require paperwork and approvals.",
            "options": [
                {
                    "id": "amend-fir-sections",
                    "text": "Amend FIR to add IT Act sections",
                    "description": "Add appropriate IT Act sections to the FIR",
                    "points": 10,
                    "feedback": "Correct action to fix the initial error, though it causes some delay in the investigation process.",
                    "consequences": _consequences(
                        ("positive", "FIR now has proper legal framework", "high"),
                        ("negative", "Amendment process causes investigation delay", "medium"),
                    ),
                    "nextDecisionId": "investigation-priority",
                    "isOptimal": True,
                    "category": "file_fir",
                },
                {
                    "id": "proceed-with-current-sections",
                    "text": "Proceed with current sections",
                    "description": "Continue investigation with existing sections",
                    "points": 2,
                    "feedback": "This will severely limit the investigation scope and may affect the case outcome.",
                    "consequences": _consequences(
                        ("negative", "Investigation scope remains limited", "high"),
                        ("negative", "Prosecution may face challenges in court", "high"),
                    ),
                    "category": "wait",
                },
            ],
        },
    ],
}


def module4_escalation_tree() -> DecisionTree:
    return DecisionTree.model_validate(MODULE4_ESCALATION_TREE)


SAMPLE_TREES: Dict[str, Callable[[], DecisionTree]] = {
    COMPLAINT_DELAY_TREE_ID: complaint_delay_tree,
    MODULE4_TREE_ID: module4_escalation_tree,
}


def get_sample_tree(tree_id: str) -> Optional[DecisionTree]:
    factory = SAMPLE_TREES.get(tree_id)
    return factory() if factory else None
