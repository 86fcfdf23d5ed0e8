"""Imports every model module so ``Base.metadata`` knows all tables."""
from questionbank.auth.models import User, Deputization
from questionbank.licenses.models import License
from questionbank.projects.models import Project, ProjectMember, ProjectQuestion
from questionbank.comments.models import CommentThread, Comment, CommentThreadSubscription
from questionbank.questions.models import (
    AnswerChoice, Question, QuestionCollaborator, QuestionDependencyPair, QuestionDerivation,
    QuestionPart, QuestionRoleRequest, QuestionSetup, Solution,
)
