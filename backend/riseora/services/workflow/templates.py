"""
Dispute Letter Templates

Five fixed letter bodies, one per non-AI workflow stage. Each letter is:

    sender block / date / bureau address / stage body / signature

Rendering never raises for bad input: an unknown stage yields a failed
LetterResult, and AI_ESCALATION yields an empty deferred result because that
body is produced by the escalation generator.

Required fields are NOT validated here. Use
DisputeTemplateData.missing_required_fields() before rendering.
"""
from datetime import date
from typing import Any, Callable, Dict, Optional

from ...models.workflow import DisputeTemplateData, DisputeTemplateStage, LetterResult
from .bureaus import get_bureau_address
from .stages import coerce_stage


INVALID_STAGE_MESSAGE = "Invalid template stage"
UNKNOWN_VALUE = "Unknown"


# =============================================================================
# SHARED BLOCKS
# =============================================================================

def format_letter_date(value: date) -> str:
    """Long US date, e.g. 'January 5, 2026'."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def _optional_line(label: str, value: Optional[str]) -> str:
    return f"{label}: {value}" if value else ""


def _account_number(data: DisputeTemplateData) -> str:
    return data.account_number or UNKNOWN_VALUE


def _header(data: DisputeTemplateData, today: date) -> str:
    return f"""{data.full_name}
{data.address}
{data.city}, {data.state} {data.zip}

{format_letter_date(today)}

{get_bureau_address(data.bureau)}

"""


# =============================================================================
# STAGE BODIES
# =============================================================================

def _investigation_request(data: DisputeTemplateData) -> str:
    return f"""Re: Investigation Request Under 15 U.S.C. Sec. 1681i(a)

To Whom It May Concern:

I received a copy of my credit report with the intention of trying to improve my credit and take care of my responsibilities. I noticed a few accounts that I wanted a little more explanation on. I am not saying they are reporting right or wrong. I am just saying that I am not 100 percent sure if they are.

I also read something called the Fair Credit Reporting Act where it said by law, I had rights to challenge anything I am not sure is accurate. Some of the people reporting things on me, I have never heard of which made me write to you all.

Under 15 U.S.C. Sec. 1681i(a), I understand that you are required to conduct a reasonable investigation into the accuracy of disputed information. I am requesting that you investigate this account and provide me with documentation of your findings. I understand you have 30 days to complete this investigation.

Please investigate the following account for accuracy:

Account Name: {data.creditor_name}
Account Number: {_account_number(data)}
Dispute Reason: {data.dispute_reason}
{_optional_line("Additional Details", data.custom_reason)}

I am requesting verification of every element of this account. Under the FCRA, I understand you are required to complete this investigation within 30 days and provide me with the results of your investigation.

Sincerely,

{data.full_name}

Enclosures:
- Copy of government-issued ID
- Proof of address (utility bill or bank statement)"""


def _personal_info_remover(data: DisputeTemplateData) -> str:
    return f"""Re: Request to Remove Outdated Personal Information

To Whom It May Concern:

I am writing to request the removal of outdated and incorrect personal information from my credit file. Under the Fair Credit Reporting Act (FCRA), 15 U.S.C. § 1681e(b), consumer reporting agencies are required to follow reasonable procedures to assure maximum possible accuracy of the information concerning the individual about whom the report relates.

For identification purposes:
{_optional_line("Last 4 of SSN", data.ssn4)}
{_optional_line("Year of Birth", data.birth_year)}

The following personal information on my credit file is outdated, incorrect, or no longer applicable:

Current Account Being Disputed:
Account Name: {data.creditor_name}
Account Number: {_account_number(data)}

I am requesting that you verify this information and remove any data that cannot be verified as accurate. Under the FCRA, you are required to investigate this dispute within 30 days.

Please update my credit file accordingly and send me an updated copy of my credit report showing the corrections.

Sincerely,

{data.full_name}

Enclosures:
- Copy of government-issued ID
- Proof of current address"""


def _validation_of_debt(data: DisputeTemplateData) -> str:
    return f"""Re: Validation of Debt Request - {data.creditor_name}

To Whom It May Concern:

I am writing in response to the account listed on my credit report. I am disputing this debt and requesting validation pursuant to the Fair Debt Collection Practices Act (FDCPA), 15 U.S.C. § 1692g, and the Fair Credit Reporting Act (FCRA).

Account Name: {data.creditor_name}
Account Number: {_account_number(data)}
{_optional_line("Reported Balance", data.balance)}
{_optional_line("Date Opened", data.date_opened)}

Please provide the following validation:

1. Verification of the amount claimed to be owed
2. The name and address of the original creditor
3. A copy of the original signed contract or agreement bearing my signature
4. Complete payment history from the original creditor
5. Proof that you have the legal right to collect this debt
6. Documentation showing the debt has not passed the statute of limitations
7. Proof that this account belongs to me and not another individual

I understand that under the FDCPA, you have 30 days to provide this validation. I am requesting that you investigate this matter thoroughly and provide documentation supporting the accuracy of this account.

I would appreciate your timely response with the requested verification documents.

Sincerely,

{data.full_name}"""


def _factual_letter(data: DisputeTemplateData) -> str:
    return f"""Re: Factual Dispute - Request for Removal

To Whom It May Concern:

I am writing to dispute the following account that appears on my credit report. After reviewing my records, I have identified specific factual errors that require immediate correction.

Account Name: {data.creditor_name}
Account Number: {_account_number(data)}

FACTUAL ERRORS IDENTIFIED:

{data.dispute_reason}

{_optional_line("Additional Documentation", data.custom_reason)}

Under the Fair Credit Reporting Act, Section 611 (15 U.S.C. § 1681i(a)), you are required to conduct a reasonable investigation into the accuracy of this information. The information I am disputing is demonstrably inaccurate based on the facts presented above.

I am requesting that you:
1. Conduct a thorough reinvestigation of this account
2. Contact the data furnisher to verify each element of this account
3. Remove this account if any information cannot be verified as accurate
4. Provide me with documentation of your investigation results

Please complete your investigation within the 30-day timeframe required by law and notify me of your findings.

Sincerely,

{data.full_name}

Enclosures:
- Copy of government-issued ID
- Supporting documentation"""


def _termination_letter(data: DisputeTemplateData) -> str:
    return f"""Re: FINAL DEMAND FOR REMOVAL - Continued FCRA Violation
Account: {data.creditor_name}

To Whom It May Concern:

This letter serves as my FINAL DEMAND for the immediate removal of the following account from my credit report.

Account Name: {data.creditor_name}
Account Number: {_account_number(data)}

DISPUTE HISTORY:
I have previously submitted multiple dispute letters regarding this account. Despite my repeated requests for proper investigation and verification, this account continues to appear on my credit report with inaccurate information.

FCRA VIOLATIONS:
Your continued reporting of unverified and inaccurate information constitutes a violation of the Fair Credit Reporting Act, specifically:

1. 15 U.S.C. § 1681e(b) - Failure to follow reasonable procedures to assure maximum possible accuracy
2. 15 U.S.C. § 1681i - Failure to conduct a proper reinvestigation
3. 15 U.S.C. § 1681s-2 - Continued reporting of information known to be inaccurate

DEMAND:
I hereby demand that you immediately:
1. DELETE this account from my credit file
2. Cease reporting this inaccurate information
3. Provide written confirmation of deletion within 15 days

NOTICE:
I am aware of my rights under the FCRA to file complaints with consumer protection agencies if I believe my rights have been violated. I understand that the CFPB and FTC accept consumer complaints regarding credit reporting issues.

I am requesting your prompt attention to this matter and a thorough review of the documentation supporting this account.

Sincerely,

{data.full_name}"""


STAGE_BODIES: Dict[DisputeTemplateStage, Callable[[DisputeTemplateData], str]] = {
    DisputeTemplateStage.INVESTIGATION_REQUEST: _investigation_request,
    DisputeTemplateStage.PERSONAL_INFO_REMOVER: _personal_info_remover,
    DisputeTemplateStage.VALIDATION_OF_DEBT: _validation_of_debt,
    DisputeTemplateStage.FACTUAL_LETTER: _factual_letter,
    DisputeTemplateStage.TERMINATION_LETTER: _termination_letter,
}


# =============================================================================
# RENDERER
# =============================================================================

def render_letter(
    stage: Any,
    data: DisputeTemplateData,
    today: Optional[date] = None,
) -> LetterResult:
    """Render the letter body for a workflow stage."""
    resolved = coerce_stage(stage)
    if resolved is None:
        return LetterResult(stage=None, error=INVALID_STAGE_MESSAGE)

    if resolved == DisputeTemplateStage.AI_ESCALATION:
        return LetterResult(stage=resolved, content="", deferred=True)

    body = STAGE_BODIES[resolved](data)
    return LetterResult(stage=resolved, content=_header(data, today or date.today()) + body)
