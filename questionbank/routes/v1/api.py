from fastapi import APIRouter

from questionbank.questions.router import router as questions_router

api_router = APIRouter()

api_router.include_router(questions_router)
