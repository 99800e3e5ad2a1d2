from fastapi import APIRouter, Depends
from typing import List

from app.api.deps import get_chat_gateway
from app.core.exceptions import NotFoundError
from app.core.security import TokenClaims, get_current_claims
from app.schemas.chat import Chat
from app.services.chat_gateway import ChatGateway

router = APIRouter()

@router.get("", response_model=List[Chat], response_model_by_alias=True, summary="내 채팅 목록")
async def get_chats(
    claims: TokenClaims = Depends(get_current_claims),
    gateway: ChatGateway = Depends(get_chat_gateway)
):
    """
    현재 사용자가 참여한 채팅 목록을 최근 갱신 순으로 반환합니다.

    각 채팅에는 메시지 전체, 참여자 정보(`participantsInfo`), 마지막 메시지가 포함됩니다.
    """
    return await gateway.fetch_chats_for_user(claims.user_id)

@router.get("/{chat_id}", response_model=Chat, response_model_by_alias=True, summary="채팅 조회")
async def get_chat(
    chat_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    gateway: ChatGateway = Depends(get_chat_gateway)
):
    chat = await gateway.fetch_chat_for_participant(chat_id, claims.user_id, with_messages=True)
    if chat is None:
        raise NotFoundError("Chat", chat_id)
    return chat
