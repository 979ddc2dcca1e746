"""
Pydantic models for input validation
"""

import re
from pydantic import BaseModel, Field, field_validator

STACKS_ADDRESS_PATTERN = re.compile(r"^S[PMTN][0-9A-HJKMNP-TV-Z]{38,40}$")
MAX_BOUNTY_MICROSTX = 1_000_000 * 1_000_000


class StacksAddress(BaseModel):
    address: str = Field(..., min_length=39, max_length=41)

    @field_validator('address')
    @classmethod
    def validate_address_format(cls, v):
        if not v.startswith(('ST', 'SP', 'SM', 'SN')):
            raise ValueError('Invalid Stacks address format')
        if not STACKS_ADDRESS_PATTERN.match(v):
            raise ValueError('Address contains invalid characters')
        return v


class RegisterUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Username is required')
        if not v.isascii():
            raise ValueError('Username must be ASCII')
        return v


class CreateStoryRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=500)
    init_time: int = Field(..., ge=0)
    voting_window: int = Field(86400, gt=0)

    @field_validator('prompt')
    @classmethod
    def validate_prompt(cls, v):
        if not v.strip():
            raise ValueError('Story prompt is required')
        return v


class SubmitBlockRequest(BaseModel):
    story_id: int = Field(..., ge=0)
    uri: str = Field(..., min_length=1, max_length=256)
    now: int = Field(..., ge=0)

    @field_validator('uri')
    @classmethod
    def validate_uri(cls, v):
        if not v.isascii():
            raise ValueError('Audio URI must be ASCII')
        return v


class VoteBlockRequest(BaseModel):
    submission_id: int = Field(..., ge=0)


class FinalizeRoundRequest(BaseModel):
    story_id: int = Field(..., ge=0)
    round_num: int = Field(..., ge=1)
    now: int = Field(..., ge=0)


class FundBountyRequest(BaseModel):
    story_id: int = Field(..., ge=0)
    amount: int = Field(..., gt=0, le=MAX_BOUNTY_MICROSTX, description="Amount in microSTX")


class SealStoryRequest(BaseModel):
    story_id: int = Field(..., ge=0)

